"""
End-to-end tests against a real server on a loopback port.
"""

import socket
import threading
from pathlib import Path

from turbine import HTTPServer, ServerConfig


def body_of(response: bytes) -> bytes:
    """Strip the preamble and the trailing terminator."""
    head, _, rest = response.partition(b"\r\n\r\n")
    assert head.startswith(b"HTTP/1.1 200 OK")
    assert rest.endswith(b"\r\n\r\n")
    return rest[:-4]


class TestEndToEnd:
    """Requests over TCP."""

    def test_get_root(self, test_server, web_root: Path):
        response = test_server.request(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")

        assert body_of(response) == (web_root / "index.html").read_bytes()

    def test_content_length_quirk_on_the_wire(self, test_server, web_root: Path):
        response = test_server.request(b"GET /page.html HTTP/1.1\r\n\r\n")
        size = len((web_root / "page.html").read_bytes())

        assert f"Content-Length: {size + 4}\r\n".encode() in response

    def test_post_is_served_like_get(self, test_server, web_root: Path):
        response = test_server.request(b"POST /foo HTTP/1.1\r\n\r\n")

        assert body_of(response) == (web_root / "foo" / "index.html").read_bytes()

    def test_traversal_gets_no_response(self, test_server):
        assert test_server.request(b"GET /../secret.txt HTTP/1.1\r\n\r\n") == b""

    def test_malformed_request_gets_no_response(self, test_server):
        assert test_server.request(b"NOT A VALID REQUEST LINE\r\n\r\n") == b""

    def test_unterminated_request_after_half_close(self, test_server, web_root: Path):
        response = test_server.request(b"GET /page.html HTTP/1.1", half_close=True)

        assert body_of(response) == (web_root / "page.html").read_bytes()

    def test_byte_by_byte_client(self, test_server, web_root: Path):
        raw = b"GET /foo/ HTTP/1.1\r\n\r\n"
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as s:
            s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            for i in range(len(raw)):
                s.send(raw[i:i + 1])
            chunks = []
            while chunk := s.recv(4096):
                chunks.append(chunk)

        assert body_of(b"".join(chunks)) == (web_root / "foo" / "index.html").read_bytes()

    def test_failed_request_does_not_affect_others(self, test_server, web_root: Path):
        assert test_server.request(b"BAD\r\n\r\n") == b""
        assert body_of(test_server.request(b"GET / HTTP/1.1\r\n\r\n")) == (
            web_root / "index.html"
        ).read_bytes()

    def test_concurrent_clients(self, test_server, web_root: Path):
        expected = (web_root / "index.html").read_bytes()
        results = []
        lock = threading.Lock()

        def client():
            body = body_of(test_server.request(b"GET / HTTP/1.1\r\n\r\n"))
            with lock:
                results.append(body)

        threads = [threading.Thread(target=client) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert results == [expected] * 20

    def test_slow_client_does_not_block_others(self, test_server, web_root: Path):
        """One silent client holds a worker; the other workers keep serving."""
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as idle:
            idle.sendall(b"GET / HTTP/1.1\r\n")  # never finishes

            response = test_server.request(b"GET /page.html HTTP/1.1\r\n\r\n")

        assert body_of(response) == (web_root / "page.html").read_bytes()


class TestServerLifecycle:
    def test_shutdown_stops_serving(self, config: ServerConfig):
        server = HTTPServer(config)
        thread = threading.Thread(target=server.serve, daemon=True)
        thread.start()

        for _ in range(50):
            if server.is_running:
                break
            thread.join(timeout=0.1)

        assert server.is_running
        server.shutdown()
        thread.join(timeout=5.0)

        assert not thread.is_alive()
        assert not server.is_running

    def test_shutdown_before_serve_returns(self, config: ServerConfig):
        server = HTTPServer(config)
        server.shutdown()

        thread = threading.Thread(target=server.serve, daemon=True)
        thread.start()
        thread.join(timeout=4.0)

        assert not thread.is_alive()
        assert not server.is_running
