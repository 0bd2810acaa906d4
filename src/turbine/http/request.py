"""
=============================================================================
REQUEST FRAMING AND PARSING
=============================================================================

Turns the raw bytes a client sends into an HTTPRequest.

=============================================================================
FRAMING: WHERE DOES A REQUEST END?
=============================================================================

TCP is a byte stream, not a message stream. A single recv() may return
half a request, or a request split at any byte. The only delimiter we
rely on is the blank line that ends the header section:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      FRAMING A REQUEST                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   recv() #1  →  b"GET /docs/ HT"                                    │
    │   recv() #2  →  b"TP/1.1\r\nHost: loc"                              │
    │   recv() #3  →  b"alhost\r\n\r\n"      ← buffer now ends in        │
    │                                          \r\n\r\n, stop reading     │
    │                                                                      │
    │   If the client closes first (recv() returns b""), we stop and     │
    │   parse whatever arrived.                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Because the stop condition only looks at the END of the accumulated
buffer, the result does not depend on how the stream was chunked.

=============================================================================
PARSING: ONLY THE REQUEST LINE MATTERS
=============================================================================

    GET /docs/index.html HTTP/1.1\r\n     ← method, resource, version
    Host: localhost\r\n                   ← ignored
    \r\n

The first line must split on whitespace into exactly three tokens and
the method must be GET or POST (case-sensitive). Header lines are not
interpreted and POST bodies are not extracted.

Bytes that are not valid UTF-8 are replaced with U+FFFD rather than
failing the request.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

from ..errors import ConnectionIOError, TurbineError


# Blank line that terminates the request head
REQUEST_TERMINATOR = b"\r\n\r\n"
LINE_SEPARATOR = "\r\n"

DEFAULT_BUFFER_SIZE = 1024


# =============================================================================
# ERRORS
# =============================================================================

class HTTPParseError(TurbineError):
    """Raised when a request cannot be framed or parsed."""


class EmptyRequestError(HTTPParseError):
    """The client closed the connection without sending anything."""

    def __init__(self):
        super().__init__("Http request cannot be empty")


class InvalidHeadersError(HTTPParseError):
    """The request line does not have exactly method, resource, version."""

    def __init__(self, line: str):
        super().__init__(f"Headers must have method, resource, version: {line!r}")
        self.line = line


class InvalidMethodError(HTTPParseError):
    """The method token is not one we serve."""

    def __init__(self, method: str):
        super().__init__(f"Unknown or unsupported http method: {method}")
        self.method = method


class RequestTooLargeError(HTTPParseError):
    """The request grew past the configured max_request_size."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request too large: {size} bytes (limit {limit})")
        self.size = size
        self.limit = limit


# =============================================================================
# REQUEST
# =============================================================================

class Method(Enum):
    """Supported request methods."""
    GET = "GET"
    POST = "POST"


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed request.

    Attributes:
        method:   GET or POST.
        resource: The raw second token of the request line, exactly as
                  the client sent it. Untrusted; see handlers/resolver.py.
        version:  The raw third token (e.g. "HTTP/1.1"). Not validated.
        headers:  Always empty. Header lines are not interpreted.
        body:     Always empty. POST bodies are not extracted.
    """

    method: Method
    resource: str
    version: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class RequestParser:
    """
    Parses a complete raw request into an HTTPRequest.

    Usage:
        parser = RequestParser()
        request = parser.parse(b"GET / HTTP/1.1\\r\\n\\r\\n")
        request.method    # Method.GET
        request.resource  # "/"
    """

    def parse(self, data: bytes) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Bytes read from the client, terminator included or not.

        Returns:
            The parsed request.

        Raises:
            EmptyRequestError: data is empty.
            InvalidHeadersError: the first line is not three tokens.
            InvalidMethodError: the method is not GET or POST.
        """
        if not data:
            raise EmptyRequestError()

        # Lossy decode: invalid sequences become U+FFFD, never an error
        text = data.decode("utf-8", errors="replace")

        first_line = text.split(LINE_SEPARATOR, 1)[0]
        tokens = first_line.split()
        if len(tokens) != 3:
            raise InvalidHeadersError(first_line)

        method_token, resource, version = tokens
        try:
            method = Method(method_token)
        except ValueError:
            raise InvalidMethodError(method_token) from None

        # TODO: extract the body for POST once Content-Length is parsed
        return HTTPRequest(method=method, resource=resource, version=version)


def read_raw_request(
    recv: Callable[[int], bytes],
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    max_request_size: Optional[int] = None,
) -> bytes:
    """
    Read from a stream until the request terminator or end of input.

    Args:
        recv: Socket-style read function; returns b"" at end of input.
        buffer_size: Maximum bytes requested per read.
        max_request_size: Optional cap on the accumulated buffer.
                          None means unlimited.

    Returns:
        Everything read, which may lack the terminator if the client
        closed early.

    Raises:
        ConnectionIOError: recv() raised an OSError (reset, timeout, ...).
        RequestTooLargeError: the buffer exceeded max_request_size.
    """
    buffer = bytearray()

    while True:
        try:
            chunk = recv(buffer_size)
        except OSError as e:
            raise ConnectionIOError(f"Failed to read request: {e}") from e

        if not chunk:
            break  # Client closed its side

        buffer += chunk

        if max_request_size is not None and len(buffer) > max_request_size:
            raise RequestTooLargeError(len(buffer), max_request_size)

        if buffer.endswith(REQUEST_TERMINATOR):
            break

    return bytes(buffer)


def frame(
    recv: Callable[[int], bytes],
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    max_request_size: Optional[int] = None,
) -> HTTPRequest:
    """Read one request from a stream and parse it."""
    raw = read_raw_request(recv, buffer_size, max_request_size)
    return RequestParser().parse(raw)


def parse_request(data: bytes) -> HTTPRequest:
    """Convenience wrapper around RequestParser().parse()."""
    return RequestParser().parse(data)
