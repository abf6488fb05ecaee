"""
=============================================================================
APPLICATION
=============================================================================

The dispatcher: it owns the middleware list, turns each incoming request
into a ``Context``, runs the composed pipeline over it and writes whatever
the pipeline left on the response.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST LIFECYCLE                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer ──► Connection.read_request() ──► RequestParser      │
    │                                                        │             │
    │                                                        ▼             │
    │   handle_request(req, res)                                           │
    │        │  res.status_code = 404   (nothing handled it yet)          │
    │        │  ctx = create_context(req, res)                             │
    │        │                                                             │
    │        ├──► await pipeline(ctx)                                     │
    │        │        │                                                    │
    │        │        ├── ok    ──► await respond(ctx)                    │
    │        │        └── error ──► ctx.onerror(error)                    │
    │        ▼                                                             │
    │   keep-alive? read the next request : close                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Usage:

    app = Application()

    async def hello(ctx, next):
        ctx.body = "Hello World"

    app.use(hello)
    app.listen(3000)

=============================================================================
"""

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from .config import AppConfig
from .context import Context
from .core.connection import Connection
from .core.server import SocketServer
from .core.transport import ServerResponse
from .http.message import IncomingRequest
from .http.parser import HTTPParseError, RequestParser
from .http.status_codes import HTTPStatus, is_empty
from .middleware.compose import compose, convert
from .streams import close_stream, is_stream

logger = logging.getLogger(__name__)


class Application:
    """
    A middleware application.

    Attributes:
        config: Application configuration
        proxy: Trust X-Forwarded-* headers
        env: Environment name
        middleware: Registered (normalized) middleware, in order
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        self.config.validate()

        self.proxy = self.config.proxy
        self.env = self.config.env
        self.middleware: List[Callable] = []

        self._listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._server: Optional[SocketServer] = None
        self._handler: Optional[Callable] = None

    def __repr__(self) -> str:
        return f"<Application env={self.env!r} proxy={self.proxy} middleware={len(self.middleware)}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "env": self.env,
            "proxy": self.proxy,
            "middleware": [getattr(fn, "__name__", repr(fn)) for fn in self.middleware],
        }

    # =========================================================================
    # MIDDLEWARE REGISTRATION
    # =========================================================================

    def use(self, fn: Callable) -> "Application":
        """
        Append a middleware.

        Accepts ``async def (ctx, next)``, plain ``def (ctx, next)``,
        generator middleware and ``Middleware`` instances.

        Returns:
            Self for chaining: ``app.use(a).use(b)``

        Raises:
            TypeError: ``fn`` is not callable.
        """
        if not callable(fn):
            raise TypeError("middleware must be a function")

        handler = convert(fn)
        self.middleware.append(handler)
        logger.debug(f"use {getattr(fn, 'name', None) or getattr(fn, '__name__', repr(fn))}")
        return self

    # =========================================================================
    # EVENTS
    # =========================================================================

    def on(self, event: str, listener: Callable) -> "Application":
        self._listeners[event].append(listener)
        return self

    def listeners(self, event: str) -> List[Callable]:
        return list(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener for ``event``; True if there was any."""
        listeners = self.listeners(event)
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    def onerror(self, error: BaseException, ctx: Optional[Context] = None) -> None:
        """Default "error" listener: log it."""
        status = getattr(error, "status", None)
        where = f" ({ctx.method} {ctx.url})" if ctx is not None else ""
        if isinstance(status, int) and status < 500:
            logger.info(f"{status} {error}{where}")
            return
        logger.error(f"{type(error).__name__}: {error}{where}", exc_info=error)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def create_context(self, req: IncomingRequest, res: ServerResponse) -> Context:
        return Context(self, req, res)

    def callback(self) -> Callable:
        """
        Build the per-request handler.

        The middleware list is composed once here, so middleware added
        afterwards is not seen by handlers built earlier.
        """
        if not self.listeners("error"):
            self.on("error", self.onerror)

        pipeline = compose(self.middleware)

        async def handle_request(req: IncomingRequest, res: ServerResponse) -> Context:
            res.status_code = 404
            ctx = self.create_context(req, res)
            try:
                await pipeline(ctx)
                await self.respond(ctx)
            except Exception as e:
                if is_stream(ctx.body):
                    await close_stream(ctx.body)
                ctx.onerror(e)
            return ctx

        return handle_request

    async def respond(self, ctx: Context) -> None:
        """
        Write the context's response to the transport.

        Bytes and str bodies are written in one go, streams are piped,
        other values are sent as JSON. With no body the status message is
        sent as text/plain.
        """
        if not ctx.writable:
            if is_stream(ctx.body):
                await close_stream(ctx.body)
            return

        res = ctx.res
        body = ctx.body

        if is_empty(ctx.status):
            if is_stream(body):
                await close_stream(body)
            res.end()
            return

        if ctx.method == "HEAD":
            if not res.headers_sent and not res.has_header("Content-Length"):
                length = ctx.response.length
                if length is not None:
                    ctx.length = length
            if is_stream(body):
                await close_stream(body)
            res.end()
            return

        if isinstance(body, (bytes, bytearray, memoryview)):
            res.end(bytes(body))
            return

        if isinstance(body, str):
            res.end(body.encode("utf-8"))
            return

        if is_stream(body):
            await res.pipe(body, on_error=ctx.response.stream_error_listener)
            return

        if body is None:
            if not ctx.type:
                ctx.type = "text"
            payload = (ctx.message or str(ctx.status)).encode("utf-8")
        else:
            payload = json.dumps(body).encode("utf-8")

        if not res.headers_sent:
            ctx.length = len(payload)
        res.end(payload)

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def handle_connection(self, conn: Connection) -> None:
        """Serve requests on one connection until it closes."""
        if self._handler is None:
            self._handler = self.callback()

        while True:
            try:
                raw = await conn.read_request()
            except TimeoutError:
                await self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except HTTPParseError as e:
                await self._send_error(conn, e.status_code, str(e))
                return

            if raw is None:
                return

            try:
                req = self._parser.parse(raw, conn.address, encrypted=conn.encrypted)
            except HTTPParseError as e:
                await self._send_error(conn, e.status_code, str(e))
                return

            keep_alive = req.is_keep_alive and self.config.keep_alive
            res = ServerResponse(
                conn.writer,
                method=req.method,
                keep_alive=keep_alive,
                server_name=self.config.server_name,
                socket=req.socket,
            )
            if keep_alive:
                res.set_header("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")

            await self._handler(req, res)

            if not await res.flush():
                return
            if not (res.finished and res.keep_alive):
                return
            conn.set_keep_alive()

    async def _send_error(self, conn: Connection, status: int, message: str) -> None:
        """Answer a request that never made it to a context."""
        res = ServerResponse(conn.writer, keep_alive=False, server_name=self.config.server_name)
        res.status_code = int(status)
        res.set_header("Content-Type", "application/json")
        res.end(json.dumps({"error": message}).encode("utf-8"))
        await res.flush()

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> SocketServer:
        """
        Start listening without blocking; returns the running server.

        ``port=0`` binds a free port, see ``server.address``.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port
        self.config.validate()

        self._handler = self.callback()
        self._server = SocketServer(self.config)
        await self._server.start(self.handle_connection)
        return self._server

    async def close(self) -> None:
        if self._server is not None:
            await self._server.shutdown()
            self._server = None

    def listen(self, port: Optional[int] = None, host: Optional[str] = None) -> None:
        """Run the server until interrupted (blocking)."""
        self._setup_logging()

        async def serve() -> None:
            server = await self.start(host=host, port=port)
            try:
                await server.serve_forever()
            finally:
                await self.close()

        try:
            asyncio.run(serve())
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        logger.info("Server stopped")

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("hserver").setLevel(level)


def create_app(config: Optional[AppConfig] = None) -> Application:
    """Factory returning a fresh ``Application``."""
    return Application(config)
