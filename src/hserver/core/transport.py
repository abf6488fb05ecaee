"""
=============================================================================
SERVER RESPONSE (TRANSPORT SIDE)
=============================================================================

The ``res`` half of a context: a thin writer over an ``asyncio.StreamWriter``
that knows how to put a status line, headers and a body on the wire.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RESPONSE LIFECYCLE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   status_code / headers mutable                                     │
    │        │                                                             │
    │        ▼                                                             │
    │   end(payload)  or  await pipe(stream)                              │
    │        │                                                             │
    │        ├── first write sends the head  → headers_sent = True        │
    │        └── last write                  → finished = True            │
    │                                                                      │
    │   After headers_sent the status and headers are frozen.             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Streams without a Content-Length are written raw and the connection is
closed afterwards, which is how HTTP/1.x delimits such bodies.

=============================================================================
"""

import logging
from typing import Callable, Dict, Optional

from ..config import SERVER_NAME
from ..http.dates import format_http_date
from ..http.headers import Headers, HeaderValue
from ..http.message import SocketInfo
from ..http.status_codes import is_empty, status_phrase
from ..streams import CHUNK_SIZE, close_stream, iter_chunks

logger = logging.getLogger(__name__)


class ServerResponse:
    """
    Raw HTTP response bound to one connection.

    Args:
        writer: ``asyncio.StreamWriter`` (or anything with write/drain/
                is_closing)
        method: Request method; HEAD responses never carry a payload
        keep_alive: Whether the connection may be reused after this response
        server_name: Value for the Server header
        socket: Socket info shared with the request
    """

    def __init__(
        self,
        writer,
        method: str = "GET",
        keep_alive: bool = True,
        server_name: Optional[str] = SERVER_NAME,
        socket: Optional[SocketInfo] = None,
    ):
        self.status_code = 200
        self.status_message = ""
        self.headers = Headers()
        self.headers_sent = False
        self.finished = False
        self.keep_alive = keep_alive
        self.method = method
        self.server_name = server_name
        self.socket = socket or SocketInfo()
        self._writer = writer

    def __repr__(self) -> str:
        return (
            f"ServerResponse(status={self.status_code}, "
            f"headers_sent={self.headers_sent}, finished={self.finished})"
        )

    # =========================================================================
    # HEADERS
    # =========================================================================

    def set_header(self, name: str, value) -> None:
        if self.headers_sent:
            raise RuntimeError(f"Cannot set header {name!r} after headers are sent")
        self.headers[name] = value

    def get_header(self, name: str) -> Optional[HeaderValue]:
        return self.headers.get(name)

    def has_header(self, name: str) -> bool:
        return name in self.headers

    def remove_header(self, name: str) -> None:
        if self.headers_sent:
            raise RuntimeError(f"Cannot remove header {name!r} after headers are sent")
        self.headers.pop(name, None)

    def get_headers(self) -> Dict[str, HeaderValue]:
        return self.headers.to_dict()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def writable(self) -> bool:
        """False once the response ended or the peer went away."""
        if self.finished:
            return False
        is_closing = getattr(self._writer, "is_closing", None)
        return not (is_closing and is_closing())

    # =========================================================================
    # WRITING
    # =========================================================================

    def _write_head(self) -> None:
        reason = self.status_message or status_phrase(self.status_code) or ""
        lines = [f"HTTP/1.1 {self.status_code} {reason}".rstrip()]

        if "Date" not in self.headers:
            self.headers["Date"] = format_http_date()
        if self.server_name and "Server" not in self.headers:
            self.headers["Server"] = self.server_name
        if "Connection" not in self.headers:
            self.headers["Connection"] = "keep-alive" if self.keep_alive else "close"
        elif str(self.headers["Connection"]).lower() == "close":
            self.keep_alive = False

        for name, value in self.headers.lines():
            lines.append(f"{name}: {value}")

        head = "\r\n".join(lines) + "\r\n\r\n"
        self._writer.write(head.encode("latin-1"))
        self.headers_sent = True

    def end(self, payload: bytes = b"") -> None:
        """
        Finish the response, sending the head first if needed.

        A Content-Length matching ``payload`` is added when none was set,
        except for statuses that forbid a body.
        """
        if self.finished:
            return

        if not self.headers_sent:
            if "Content-Length" not in self.headers and not is_empty(self.status_code):
                if self.method != "HEAD" or payload:
                    self.headers["Content-Length"] = str(len(payload))
            self._write_head()

        if payload and self.method != "HEAD" and not is_empty(self.status_code):
            self._writer.write(payload)
        self.finished = True

    async def pipe(
        self,
        stream,
        on_error: Optional[Callable[[BaseException], None]] = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        """
        Copy a byte stream to the client, then end the response.

        The head goes out with the first chunk, so a stream that fails
        before producing anything leaves the response untouched. Failures
        are handed to ``on_error`` (re-raised when there is none) and the
        stream is closed on every path.
        """
        try:
            async for chunk in iter_chunks(stream, chunk_size):
                if not chunk:
                    continue
                if not self.headers_sent:
                    if "Content-Length" not in self.headers:
                        self.keep_alive = False
                    self._write_head()
                self._writer.write(chunk)
                await self._writer.drain()
            self.end()
        except Exception as e:
            if self.headers_sent:
                # body is truncated, the connection cannot be reused
                self.keep_alive = False
            if on_error is None:
                raise
            on_error(e)
        finally:
            await close_stream(stream)

    async def flush(self) -> bool:
        """
        Drain buffered output.

        Returns:
            False when the peer disconnected.
        """
        try:
            await self._writer.drain()
            return True
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError) as e:
            logger.debug(f"Flush failed, peer gone: {e}")
            self.keep_alive = False
            return False
