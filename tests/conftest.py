"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from turbine import HTTPServer, ServerConfig
from turbine.handlers import DocumentRoot


INDEX_HTML = b"<html><body>Welcome to turbine</body></html>"
FOO_INDEX_HTML = b"<html><body>foo</body></html>"
PAGE_HTML = b"<html><body>page</body></html>"
SECRET = b"top secret"


@pytest.fixture
def web_root(tmp_path: Path) -> Path:
    """
    A document root with a small tree, plus a secret file next to it.

        tmp_path/
            secret.txt              ← outside the root
            web/
                index.html
                page.html
                foo/index.html
                empty/              ← directory without index.html
    """
    (tmp_path / "secret.txt").write_bytes(SECRET)

    root = tmp_path / "web"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "page.html").write_bytes(PAGE_HTML)
    (root / "foo").mkdir()
    (root / "foo" / "index.html").write_bytes(FOO_INDEX_HTML)
    (root / "empty").mkdir()
    return root


@pytest.fixture
def document_root(web_root: Path) -> DocumentRoot:
    """Canonical DocumentRoot for web_root."""
    return DocumentRoot.from_path(web_root)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample GET request with a few ignored headers."""
    return (
        b"GET /foo/ HTTP/1.1\r\n"
        b"Host: localhost:12345\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def config(web_root: Path) -> ServerConfig:
    """Test server configuration on an ephemeral port."""
    return ServerConfig(
        document_root=str(web_root),
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it accepts."""
        self._thread = threading.Thread(target=self.server.serve, daemon=True)
        self._thread.start()

        for _ in range(50):  # 5 seconds max
            if self.server.is_running:
                return
            time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes, half_close: bool = False, timeout: float = 5.0) -> bytes:
        """
        Send raw bytes and read until the server closes.

        half_close shuts down our write side after sending, for requests
        that never send the terminator.
        """
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            if half_close:
                s.shutdown(socket.SHUT_WR)
            return recv_all(s)


def recv_all(sock: socket.socket) -> bytes:
    """Read until the peer closes the connection."""
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A running server over web_root."""
    test_srv = TestServer(HTTPServer(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()
