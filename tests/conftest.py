"""
pytest configuration and fixtures.
"""

import threading
from typing import Callable, Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from interceptor import InterceptServer, ServerConfig
from interceptor.http import Cookie, HTTPRequest, ResponseRecorder, parse_request
from interceptor.intercept import InterceptWriter, allow, deny, require_cookie


# =============================================================================
# REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


def make_request(path: str = "/", cookie: Optional[str] = None, method: str = "GET") -> HTTPRequest:
    """Build a parsed request, optionally with a Cookie header."""
    raw = f"{method} {path} HTTP/1.1\r\nHost: localhost\r\nUser-Agent: pytest\r\n"
    if cookie is not None:
        raw += f"Cookie: {cookie}\r\n"
    raw += "\r\n"
    return parse_request(raw.encode(), ("127.0.0.1", 40000))


@pytest.fixture
def request_factory() -> Callable[..., HTTPRequest]:
    return make_request


@pytest.fixture
def recorder() -> ResponseRecorder:
    return ResponseRecorder()


# =============================================================================
# CALLBACKS
# =============================================================================

class CallLog:
    """Records callback invocations in order."""

    def __init__(self):
        self.calls: List[str] = []
        self.observed: List[tuple] = []

    def authorizer(self, name: str, outcome=None):
        def authorize(w: InterceptWriter, request: HTTPRequest):
            self.calls.append(name)
            return outcome if outcome is not None else allow()
        return authorize

    def handler(self, *chunks, name: str = "handler"):
        def handle(w: InterceptWriter, request: HTTPRequest):
            self.calls.append(name)
            for chunk in chunks:
                w.write(chunk)
        return handle

    def monitor(self, name: str):
        def observe(w: InterceptWriter, request: HTTPRequest, chunks):
            self.calls.append(name)
            self.observed.append((name, chunks))
        return observe


@pytest.fixture
def call_log() -> CallLog:
    return CallLog()


def login_page(w: InterceptWriter, request: HTTPRequest) -> None:
    w.write(b"hello")
    w.set_cookie(Cookie(name="S", value="a1b2c3"))
    w.write(b" buddy")


def update_resource(w: InterceptWriter, request: HTTPRequest) -> None:
    w.add_header("ETag", "a1")
    w.write(b"updated successfully")


# =============================================================================
# SERVER
# =============================================================================

@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=0.5,
        log_level="WARNING",
    )


class TestServer:
    """Runs an InterceptServer in a background thread."""

    __test__ = False

    def __init__(self, server: InterceptServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown(timeout=10.0)
        if self._thread is not None:
            self._thread.join(timeout=5.0)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """Server with the login/update pipelines mounted."""
    server = InterceptServer(config)

    server.route("/login")(login_page)
    server.route("/update", authorizers=[require_cookie("S")])(update_resource)

    @server.route("/open", authorizers=[lambda w, r: allow()])
    def open_update(w, request):
        update_resource(w, request)

    @server.route("/forbidden", authorizers=[lambda w, r: deny("nope", 403)])
    def forbidden(w, request):
        w.write(b"never sent")

    @server.route("/boom")
    def boom(w, request):
        raise RuntimeError("handler exploded")

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
