"""
=============================================================================
ASYNCIO SOCKET SERVER
=============================================================================

Listens for TCP connections and hands each one, wrapped in a
``Connection``, to a coroutine supplied by the application.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    await start(handler)   asyncio.start_server() binds + listens    │
    │        │                                                             │
    │        └──► per connection task:                                     │
    │                Connection(reader, writer, ...)                       │
    │                await handler(conn)                                   │
    │                                                                      │
    │    await serve_forever()  blocks until shutdown()                    │
    │    await shutdown()       stop accepting, close the listener         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

One task per connection; requests on the same connection are handled one
after another by the handler.

=============================================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

from ..config import AppConfig
from .connection import Connection

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[Connection], Awaitable[None]]


class SocketServer:
    """
    TCP listener built on ``asyncio.start_server``.

    Usage:
        async def handle(conn: Connection):
            ...

        server = SocketServer(config)
        await server.start(handle)
        await server.serve_forever()
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self._server: Optional[asyncio.AbstractServer] = None
        self._handler: Optional[ConnectionHandler] = None

    @property
    def is_running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port when configured with port 0."""
        if self._server and self._server.sockets:
            sockname = self._server.sockets[0].getsockname()
            return sockname[0], sockname[1]
        return self.config.host, self.config.port

    async def start(self, connection_handler: ConnectionHandler) -> None:
        """Bind and start accepting; returns once the listener is up."""
        self._handler = connection_handler
        try:
            self._server = await asyncio.start_server(
                self._on_connect,
                host=self.config.host,
                port=self.config.port,
                backlog=self.config.backlog,
            )
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername") or ("", 0)
        conn = Connection(
            reader=reader,
            writer=writer,
            address=(peer[0], peer[1]),
            timeout=self.config.timeout,
            keep_alive_timeout=self.config.keep_alive_timeout,
            max_request_size=self.config.max_request_size,
        )
        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{peer[1]}")

        try:
            await self._handler(conn)
        except Exception as e:
            logger.exception(f"[{conn.id}] Unhandled error on connection: {e}")
        finally:
            await conn.close()

    async def serve_forever(self) -> None:
        if self._server is None:
            raise RuntimeError("SocketServer.start() must be awaited first")
        await self._server.serve_forever()

    async def shutdown(self) -> None:
        """Stop accepting connections. Safe to call more than once."""
        if self._server is None:
            return
        logger.info("Shutting down socket server...")
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Socket server stopped")
