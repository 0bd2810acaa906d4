"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps an accepted client socket for the duration of one request.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSED            │
    │             │              │             │           ▲               │
    │             └──────────────┴─────────────┴───────────┘               │
    │                      any failure closes the connection               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There is no keep-alive: one request, one response (or none), then close.
The worker that owns a connection is the only thread that touches it.

=============================================================================
WHY A WRAPPER?
=============================================================================

The raw socket gives us recv() and sendall(). The wrapper adds:

    - request framing (read until the blank line, see http/request.py)
    - error translation (OSError → ConnectionIOError)
    - a context manager so the socket is closed on every exit path
    - a short id for correlating log lines

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..errors import ConnectionIOError
from ..http.request import DEFAULT_BUFFER_SIZE, read_raw_request


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and close bookkeeping."""
    NEW = "new"                # Just accepted
    READING = "reading"        # Reading the request
    PROCESSING = "processing"  # Resolving and reading the file
    WRITING = "writing"        # Sending the response
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        state: Current lifecycle state.
        created_at: Accept time.
        buffer_size: Bytes requested per recv().
        timeout: Socket timeout in seconds, None to block indefinitely.
        max_request_size: Cap on request bytes, None for unlimited.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    # Configuration (passed from ServerConfig)
    buffer_size: int = DEFAULT_BUFFER_SIZE
    timeout: Optional[float] = None
    max_request_size: Optional[int] = None

    def __post_init__(self):
        # settimeout(None) puts the socket in blocking mode
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return str(self.address[0]) if self.address else ""

    @property
    def client_port(self) -> int:
        """Get the client port."""
        return self.address[1] if len(self.address) > 1 else 0

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read one raw request from the socket.

        Stops when the received bytes end with the blank-line terminator
        or the client closes its side, whichever comes first.

        Returns:
            The raw request bytes (possibly empty or unterminated).

        Raises:
            ConnectionIOError: The socket failed or timed out.
            RequestTooLargeError: max_request_size was exceeded.
        """
        self.state = ConnectionState.READING
        return read_raw_request(
            self.socket.recv,
            buffer_size=self.buffer_size,
            max_request_size=self.max_request_size,
        )

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> None:
        """
        Send response bytes to the client.

        Uses sendall() so partial writes are retried until everything is
        sent or the socket fails.

        Raises:
            ConnectionIOError: The client went away or the send timed out.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            raise ConnectionIOError(f"Failed to send response: {e}") from e

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection.

        shutdown(SHUT_RDWR) sends FIN so the client sees end-of-stream
        promptly; close() releases the file descriptor. Safe to call more
        than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Client already disconnected

        try:
            self.socket.close()
        except OSError as e:
            logger.debug(f"[{self.id}] Error closing socket: {e}")

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        """
        Allows:

            with conn:
                raw = conn.read_request()
                conn.send_response(response)
            # closed here, even if an exception escaped
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
