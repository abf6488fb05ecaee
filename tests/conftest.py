"""
pytest configuration and fixtures.
"""

from typing import Callable, Dict, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hserver import AppConfig, Application, Context
from hserver.core.transport import ServerResponse
from hserver.http.parser import RequestParser


class FakeWriter:
    """In-memory stand-in for an asyncio.StreamWriter."""

    def __init__(self):
        self.buffer = bytearray()
        self.closed = False
        self.extra: Dict[str, object] = {}

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        if self.closed:
            raise ConnectionResetError("peer closed")

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    def get_extra_info(self, name: str, default=None):
        return self.extra.get(name, default)


def split_response(data: bytes) -> Tuple[int, Dict[str, str], bytes]:
    """Split raw response bytes into (status, lowercased headers, body)."""
    head, _, body = bytes(data).partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers: Dict[str, str] = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        key = name.strip().lower()
        if key in headers:
            headers[key] = f"{headers[key]}, {value.strip()}"
        else:
            headers[key] = value.strip()
    return status, headers, body


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
        + body
    )


@pytest.fixture
def config() -> AppConfig:
    """Test configuration: free port, short timeouts."""
    return AppConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def app(config: AppConfig) -> Application:
    return Application(config)


@pytest.fixture
def parse_response() -> Callable[[bytes], Tuple[int, Dict[str, str], bytes]]:
    return split_response


@pytest.fixture
def make_raw() -> Callable[..., bytes]:
    """Build raw request bytes."""

    def factory(
        method: str = "GET",
        url: str = "/",
        headers: Optional[Dict[str, Optional[str]]] = None,
        body: bytes = b"",
        version: str = "HTTP/1.1",
    ) -> bytes:
        merged: Dict[str, Optional[str]] = {"Host": "localhost:8080"}
        merged.update(headers or {})
        if body and "Content-Length" not in merged:
            merged["Content-Length"] = str(len(body))

        lines = [f"{method} {url} {version}"]
        lines.extend(f"{name}: {value}" for name, value in merged.items() if value is not None)
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body

    return factory


@pytest.fixture
def make_context(make_raw) -> Callable[..., Context]:
    """
    Build a Context the way Application.callback() does, over a FakeWriter.

    The writer is reachable as ``ctx.res._writer``.
    """

    def factory(
        method: str = "GET",
        url: str = "/",
        headers: Optional[Dict[str, Optional[str]]] = None,
        body: bytes = b"",
        app: Optional[Application] = None,
        encrypted: bool = False,
        client: Tuple[str, int] = ("127.0.0.1", 54321),
        proxy: bool = False,
    ) -> Context:
        app = app or Application(AppConfig(proxy=proxy))
        raw = make_raw(method, url, headers, body)
        req = RequestParser().parse(raw, client, encrypted=encrypted)
        res = ServerResponse(FakeWriter(), method=req.method, socket=req.socket)
        res.status_code = 404
        return app.create_context(req, res)

    return factory


@pytest.fixture
def send_request(make_raw):
    """
    Run one request through ``app.callback()`` over a FakeWriter.

    Returns (status, headers, body, ctx) with headers keyed lowercase.
    """

    async def send(
        app: Application,
        method: str = "GET",
        url: str = "/",
        headers: Optional[Dict[str, Optional[str]]] = None,
        body: bytes = b"",
    ):
        req = RequestParser().parse(make_raw(method, url, headers, body), ("127.0.0.1", 54321))
        writer = FakeWriter()
        res = ServerResponse(
            writer, method=req.method, server_name=app.config.server_name, socket=req.socket
        )
        ctx = await app.callback()(req, res)
        if not writer.buffer:
            return None, {}, b"", ctx
        status, response_headers, response_body = split_response(writer.buffer)
        return status, response_headers, response_body, ctx

    return send


@pytest.fixture
def fake_writer() -> FakeWriter:
    return FakeWriter()
