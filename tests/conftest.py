"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Callable, Generator, List, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from formserver import ServerConfig, WebServer, create_app


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with a query string."""
    return (
        b"GET /form?name=Ada&address=London HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with an urlencoded form body."""
    body = b"name=Ada+Lovelace&address=12%20St%20James%27s%20Sq"
    return (
        b"POST /form HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def static_root(tmp_path: Path) -> Path:
    """
    A small static tree:

        static/
        ├── hello.txt
        ├── page.html
        ├── blob.bin
        ├── docs/
        │   └── index.html
        └── empty/
    """
    root = tmp_path / "static"
    root.mkdir()
    (root / "hello.txt").write_text("hello from disk\n")
    (root / "page.html").write_text("<html><body>page</body></html>\n")
    (root / "blob.bin").write_bytes(bytes(range(256)))
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_text("<html><body>docs index</body></html>\n")
    (root / "empty").mkdir()
    return root


@pytest.fixture
def config(free_port: int, static_root: Path) -> ServerConfig:
    """Test server configuration on a free port and a temporary static root."""
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        static_dir=str(static_root),
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: WebServer):
        self.server = server
        self.host = server.config.host
        self.port = server.config.port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Bind, then serve in a background thread."""
        self.server.bind()
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.socket_server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        self.server.socket_server.wait_for_shutdown(timeout=5.0)

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes on a fresh connection and read until the server closes it."""
        with socket.create_connection((self.host, self.port), timeout=timeout) as sock:
            sock.sendall(raw)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def start_server() -> Generator[Callable[[WebServer], TestServer], None, None]:
    """Start any WebServer in the background; stopped at teardown."""
    started: List[TestServer] = []

    def start(server: WebServer) -> TestServer:
        test_srv = TestServer(server)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(config: ServerConfig, start_server) -> TestServer:
    """The full application, serving on a background thread."""
    return start_server(create_app(config))
