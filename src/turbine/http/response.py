"""
=============================================================================
RESPONSE SERIALIZATION
=============================================================================

Every response turbine sends has the same shape:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      RESPONSE BYTES                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 200 OK\r\n                        ← status line          │
    │   Content-Type: text/html; charset=UTF-8\r\n                        │
    │   Content-Length: 27\r\n                     ← len(body) + 4        │
    │   \r\n                                       ← end of headers       │
    │   <html>...</html>                           ← file bytes           │
    │   \r\n\r\n                                   ← trailing terminator  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Content-Length counts the trailing terminator as part of the body.
Existing clients of this server depend on that exact value, so it is
kept as is.

Failures never produce a response; the connection is just closed.
=============================================================================
"""

from dataclasses import dataclass


STATUS_LINE = "HTTP/1.1 200 OK"
CONTENT_TYPE = "text/html; charset=UTF-8"
CRLF = "\r\n"
END_OF_CONTENT = b"\r\n\r\n"


@dataclass
class HTTPResponse:
    """
    A 200 OK response carrying a file's bytes.

    Usage:
        response = HTTPResponse(body=path.read_bytes())
        conn.send_response(response.to_bytes())
    """

    body: bytes = b""

    @property
    def content_length(self) -> int:
        """Value of the Content-Length header: body plus trailing terminator."""
        return len(self.body) + len(END_OF_CONTENT)

    @property
    def headers(self) -> dict:
        """Response headers in the order they are written."""
        return {
            "Content-Type": CONTENT_TYPE,
            "Content-Length": str(self.content_length),
        }

    def head_bytes(self) -> bytes:
        """Status line, headers and the blank line that ends them."""
        lines = [STATUS_LINE]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")
        return (CRLF.join(lines) + CRLF).encode("ascii")

    def to_bytes(self) -> bytes:
        """Complete response, ready for socket.sendall()."""
        return self.head_bytes() + self.body + END_OF_CONTENT
