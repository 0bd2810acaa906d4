"""
Unit tests for request framing and parsing.
"""

import pytest

from turbine.errors import ConnectionIOError
from turbine.http.request import (
    HTTPRequest,
    Method,
    RequestParser,
    EmptyRequestError,
    InvalidHeadersError,
    InvalidMethodError,
    RequestTooLargeError,
    read_raw_request,
    frame,
    parse_request,
)


class ChunkedStream:
    """Socket stand-in that returns pre-split chunks, then b""."""

    def __init__(self, *chunks: bytes):
        self.chunks = list(chunks)
        self.reads = 0

    def recv(self, bufsize: int) -> bytes:
        self.reads += 1
        if not self.chunks:
            return b""
        chunk = self.chunks.pop(0)
        # Respect bufsize like a real socket would
        if len(chunk) > bufsize:
            self.chunks.insert(0, chunk[bufsize:])
            chunk = chunk[:bufsize]
        return chunk


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_minimal_get(self):
        """The canonical minimal request."""
        request = RequestParser().parse(b"GET / HTTP/1.1\r\n\r\n")

        assert request == HTTPRequest(method=Method.GET, resource="/", version="HTTP/1.1")

    def test_parse_post(self):
        request = parse_request(b"POST /form HTTP/1.0\r\n\r\n")

        assert request.method is Method.POST
        assert request.resource == "/form"
        assert request.version == "HTTP/1.0"

    def test_headers_are_ignored(self, sample_get_request: bytes):
        """Only the request line is interpreted."""
        request = parse_request(sample_get_request)

        assert request.resource == "/foo/"
        assert request.headers == {}
        assert request.body == b""

    def test_post_body_is_not_extracted(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
        request = parse_request(raw)

        assert request.body == b""

    def test_resource_is_kept_verbatim(self):
        """No decoding, normalization or defaulting of the resource."""
        raw = b"GET /a/../b/%20c?x=1 HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.resource == "/a/../b/%20c?x=1"

    def test_empty_request(self):
        with pytest.raises(EmptyRequestError):
            parse_request(b"")

    @pytest.mark.parametrize("raw", [
        b"\r\n\r\n",
        b"GET\r\n\r\n",
        b"GET /\r\n\r\n",
        b"GET / HTTP/1.1 extra\r\n\r\n",
    ])
    def test_wrong_token_count(self, raw: bytes):
        with pytest.raises(InvalidHeadersError):
            parse_request(raw)

    @pytest.mark.parametrize("method", ["get", "Get", "PUT", "DELETE", "GWET"])
    def test_unsupported_method(self, method: str):
        """Methods are matched exactly, case-sensitively."""
        raw = f"{method} / HTTP/1.1\r\n\r\n".encode()

        with pytest.raises(InvalidMethodError) as exc_info:
            parse_request(raw)

        assert exc_info.value.method == method

    def test_invalid_utf8_is_replaced(self):
        """Undecodable bytes never fail the parse."""
        raw = b"GET /caf\xe9 HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.resource == "/caf\ufffd"

    def test_tabs_and_repeated_spaces_separate_tokens(self):
        request = parse_request(b"GET  /\tHTTP/1.1\r\n\r\n")

        assert request.resource == "/"
        assert request.version == "HTTP/1.1"

    def test_unterminated_request_still_parses(self):
        request = parse_request(b"GET /page.html HTTP/1.1")

        assert request.resource == "/page.html"


class TestReadRawRequest:
    """Tests for the framing loop."""

    def test_stops_at_terminator(self):
        stream = ChunkedStream(b"GET / HTTP/1.1\r\n\r\n", b"never read")

        raw = read_raw_request(stream.recv)

        assert raw == b"GET / HTTP/1.1\r\n\r\n"
        assert stream.reads == 1

    def test_terminator_split_across_chunks(self):
        stream = ChunkedStream(b"GET / HTTP/1.1\r\n\r", b"\n", b"never read")

        raw = read_raw_request(stream.recv)

        assert raw.endswith(b"\r\n\r\n")
        assert stream.chunks == [b"never read"]

    def test_stops_at_end_of_input(self):
        stream = ChunkedStream(b"GET / HTTP/1.1\r\n")

        assert read_raw_request(stream.recv) == b"GET / HTTP/1.1\r\n"

    def test_reads_in_bounded_chunks(self):
        stream = ChunkedStream(b"GET /page.html HTTP/1.1\r\n\r\n")

        raw = read_raw_request(stream.recv, buffer_size=4)

        assert raw == b"GET /page.html HTTP/1.1\r\n\r\n"
        assert stream.reads == len(raw) // 4 + (1 if len(raw) % 4 else 0)

    def test_blank_line_in_middle_does_not_stop_reading(self):
        """Only a buffer ENDING in the terminator completes the frame."""
        stream = ChunkedStream(b"GET / HTTP/1.1\r\n\r\nextra", b" more\r\n\r\n")

        raw = read_raw_request(stream.recv)

        assert raw == b"GET / HTTP/1.1\r\n\r\nextra more\r\n\r\n"

    def test_max_request_size(self):
        stream = ChunkedStream(b"GET /" + b"a" * 100)

        with pytest.raises(RequestTooLargeError) as exc_info:
            read_raw_request(stream.recv, buffer_size=16, max_request_size=32)

        assert exc_info.value.limit == 32

    def test_no_limit_by_default(self):
        big = b"GET /" + b"a" * 100_000 + b" HTTP/1.1\r\n\r\n"
        stream = ChunkedStream(big)

        assert read_raw_request(stream.recv) == big

    def test_socket_error_is_wrapped(self):
        def recv(bufsize: int) -> bytes:
            raise ConnectionResetError("reset by peer")

        with pytest.raises(ConnectionIOError) as exc_info:
            read_raw_request(recv)

        assert isinstance(exc_info.value.__cause__, ConnectionResetError)


class TestFrame:
    """Tests for frame(): read + parse."""

    def test_chunking_does_not_change_the_result(self):
        """One chunk and byte-by-byte delivery frame identically."""
        raw = b"GET /foo/ HTTP/1.1\r\nHost: x\r\n\r\n"

        whole = frame(ChunkedStream(raw).recv)
        bytewise = frame(ChunkedStream(*[raw[i:i + 1] for i in range(len(raw))]).recv)
        uneven = frame(ChunkedStream(raw[:3], raw[3:11], raw[11:]).recv)

        assert whole == bytewise == uneven
        assert whole.resource == "/foo/"

    def test_closed_without_data(self):
        with pytest.raises(EmptyRequestError):
            frame(ChunkedStream().recv)

    def test_partial_request_after_close(self):
        """A client that closes before the blank line still gets parsed."""
        request = frame(ChunkedStream(b"GET /page.html HTTP/1.1\r\nHost: x").recv)

        assert request.resource == "/page.html"
