"""
=============================================================================
HTTP MODULE
=============================================================================

Wire-level pieces of the server:

    request.py   - read bytes until the blank line, parse the request line
    response.py  - serialize the fixed 200 OK response

Nothing here touches the filesystem; see handlers/ for that.
=============================================================================
"""

from .request import (
    HTTPRequest,
    Method,
    RequestParser,
    HTTPParseError,
    EmptyRequestError,
    InvalidHeadersError,
    InvalidMethodError,
    RequestTooLargeError,
    read_raw_request,
    frame,
    parse_request,
)
from .response import HTTPResponse

__all__ = [
    # Request framing and parsing
    "HTTPRequest",
    "Method",
    "RequestParser",
    "read_raw_request",
    "frame",
    "parse_request",

    # Framing errors
    "HTTPParseError",
    "EmptyRequestError",
    "InvalidHeadersError",
    "InvalidMethodError",
    "RequestTooLargeError",

    # Response
    "HTTPResponse",
]
