"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop.

=============================================================================
SERVER SOCKET LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    bind()                                                            │
    │      ├──► socket()       TCP/IPv4                                    │
    │      ├──► setsockopt()   SO_REUSEADDR                                │
    │      ├──► bind()         host:port (port 0 = let the OS choose)      │
    │      └──► listen()       backlog                                     │
    │                                                                      │
    │    start(connection_handler)                                         │
    │      └──► accept loop:                                               │
    │             accept() ──► Connection ──► connection_handler(conn)     │
    │               │                                                      │
    │               ├── timeout (1s)  → check stop flag, loop              │
    │               └── OSError       → log it, keep accepting             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The loop is single-threaded. connection_handler is expected to hand the
connection to the thread pool; it may block while every worker is busy,
which is how load pushes back on accept().

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# How often the accept loop wakes up to check for shutdown
ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            pool.submit(process, args=(conn,))

        server = SocketServer(config)
        server.bind()
        print(server.address)            # actual (host, port)
        server.start(handle_connection)  # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Supplies host, port, backlog and per-connection settings.
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        # Set once by shutdown() and never cleared: a SocketServer runs once
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        """Check if the accept loop is running."""
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port), or the configured one before bind()."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def bind(self) -> None:
        """
        Create, bind and listen. Calling it again once bound is a no-op.

        Raises:
            OSError: The address could not be bound (in use, no permission).
        """
        if self._socket is not None:
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Allow restarting while old connections sit in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        # accept() wakes up periodically so shutdown() is noticed
        sock.settimeout(ACCEPT_POLL_INTERVAL)

        self._socket = sock
        host, port = self.address
        logger.info(f"Listening on {host}:{port}")

    def start(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Accept connections until shutdown() is called. Blocks.

        Args:
            connection_handler: Called on the accept thread for every new
                                connection.
        """
        self.bind()

        if self._shutdown_event.is_set():
            logger.info("Shutdown requested before start, not accepting")
            self._cleanup()
            return

        self._running = True
        self._setup_signals()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while not self._shutdown_event.is_set():
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._shutdown_event.is_set():
                    break  # Socket closed by shutdown()
                # A single failed accept (EMFILE, ECONNABORTED, ...) is not fatal
                logger.error(f"Accept error: {e}")
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    buffer_size=self.config.buffer_size,
                    timeout=self.config.timeout,
                    max_request_size=self.config.max_request_size,
                )
            except OSError as e:
                logger.error(f"Failed to set up connection from {client_address[0]}: {e}")
                client_socket.close()
                continue

            try:
                connection_handler(conn)
            except Exception as e:
                logger.exception(f"[{conn.id}] Failed to dispatch connection: {e}")
                conn.close()

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self) -> None:
        """
        Stop the loop on SIGTERM/SIGINT.

        Python only allows installing handlers from the main thread, so a
        server started on another thread (tests, embedding) skips this.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self) -> None:
        """
        Stop accepting. Safe to call from any thread, more than once.

        A call made before start() is remembered: start() then returns
        without accepting anything.
        """
        self._shutdown_event.set()
        self._running = False

    def _cleanup(self) -> None:
        self._restore_signals()

        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

        self._running = False
        logger.info("Socket server stopped")
