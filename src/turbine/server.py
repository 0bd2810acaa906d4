"""
=============================================================================
SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      REQUEST FLOW                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer (accept thread)                                       │
    │       │ accept()                                                     │
    │       ▼                                                              │
    │   _dispatch(conn) ──► ThreadPool.submit(process_connection, conn)    │
    │                                   │                                  │
    │                                   ▼  (worker thread)                 │
    │   process_connection(conn)                                           │
    │       with conn:                                                     │
    │           handle_connection(conn)                                    │
    │               1. frame     conn.read_request() + RequestParser      │
    │               2. resolve   StaticFileHandler → Resolver             │
    │               3. read      whole file into memory                   │
    │               4. write     200 OK preamble, body, terminator        │
    │       any TurbineError → logged, connection closed, no response      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The only state shared between workers is the DocumentRoot (immutable)
and the stateless resolver built around it. Everything per request lives
on the worker's stack.

=============================================================================
"""

import logging
import time
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .errors import ConfigError, TurbineError
from .handlers import DocumentRoot, StaticFileHandler
from .http import RequestParser


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("turbine.access")


class HTTPServer:
    """
    Concurrent static-file server.

    Usage:
        server = HTTPServer(ServerConfig(document_root="./public", port=8000))
        server.run()    # blocks until SIGINT/SIGTERM or shutdown()

    Components:
    - DocumentRoot: canonical directory, built once here
    - StaticFileHandler: resolves and reads files
    - RequestParser: turns raw bytes into HTTPRequest
    - ThreadPool: fixed set of workers
    - SocketServer: accept loop
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults if not provided.

        Raises:
            ConfigError: Invalid settings or a missing document root.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        try:
            self.document_root = DocumentRoot.from_path(self.config.document_root)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        self._static = StaticFileHandler(self.document_root, index_file=self.config.index_file)
        self._parser = RequestParser()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(num_workers=self.config.workers)

        self._running = False

    @property
    def address(self):
        """Bound (host, port) once the socket is bound."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """Configure logging, then serve until stopped."""
        self._setup_logging()
        self.serve()

    def serve(self) -> None:
        """
        Bind, start the workers and accept connections. Blocks.

        There is no drain protocol: on shutdown the accept loop stops and
        connections already handed to workers run to completion.
        """
        self._socket_server.bind()
        self._thread_pool.start()
        self._running = True

        host, port = self.address
        logger.info(
            f"Serving {self.document_root} on {host}:{port} "
            f"with {self.config.workers} workers"
        )

        try:
            self._socket_server.start(self._dispatch)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self) -> None:
        """Ask the accept loop to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        logger.debug(f"Thread pool: {self._thread_pool.stats}")
        self._thread_pool.shutdown(wait=True, timeout=5.0)
        logger.info("Server stopped")

    def _setup_logging(self) -> None:
        """Configure logging based on config."""
        level = self.config.logging_level

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("turbine").setLevel(level)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _dispatch(self, conn: Connection) -> None:
        """
        Hand a connection to the pool (runs on the accept thread).

        Blocks while every worker is busy.
        """
        self._thread_pool.submit(self.process_connection, args=(conn,))

    def process_connection(self, conn: Connection) -> None:
        """
        Worker task: handle one connection and always close it.

        Errors are logged here and go no further; other connections and
        the accept loop are unaffected.
        """
        with conn:
            try:
                self.handle_connection(conn)
            except TurbineError as e:
                logger.warning(
                    f"[{conn.id}] {conn.client_ip}:{conn.client_port} "
                    f"{type(e).__name__}: {e}"
                )

    def handle_connection(self, conn: Connection) -> None:
        """
        Frame, resolve, read and respond for a single connection.

        Does not close the connection; process_connection does.

        Raises:
            HTTPParseError: Empty or malformed request.
            ResolveError: The resource does not map to a servable file.
            FileReadError: The resolved file could not be read.
            ConnectionIOError: Reading the request or sending the response failed.
        """
        start_time = time.time()

        # ─────────────────────────────────────────────────────────────────
        # FRAME
        # ─────────────────────────────────────────────────────────────────
        raw_request = conn.read_request()
        request = self._parser.parse(raw_request)

        # ─────────────────────────────────────────────────────────────────
        # RESOLVE AND READ
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.PROCESSING
        response = self._static.handle(request)

        # ─────────────────────────────────────────────────────────────────
        # WRITE
        # ─────────────────────────────────────────────────────────────────
        payload = response.to_bytes()
        conn.send_response(payload)

        duration_ms = (time.time() - start_time) * 1000
        access_logger.info(
            f'{conn.client_ip} - - "{request.method.value} {request.resource} '
            f'{request.version}" 200 {len(payload)} {duration_ms:.2f}ms'
        )
