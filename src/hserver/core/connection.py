"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client connection (an asyncio reader/writer pair) and
reads complete HTTP requests from it.

TCP is a byte stream, not a message protocol: one request may arrive in
several reads, or two pipelined requests in one. A request is complete
when the header terminator has been seen AND Content-Length body bytes
have followed it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    read_request()                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   readuntil(b"\\r\\n\\r\\n")   timeout: first request → timeout          │
    │        │                            later requests → keep-alive     │
    │        ▼                                                             │
    │   Content-Length?  ── yes ──► readexactly(n)                        │
    │        │                                                             │
    │        ▼                                                             │
    │   header bytes + body bytes                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..http.parser import HTTPParseError

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    KEEP_ALIVE = "keep_alive"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        reader: asyncio stream reader
        writer: asyncio stream writer
        address: Peer (ip, port)
        id: Short identifier for log lines
        requests_handled: Requests served on this connection so far
    """

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    address: Tuple[str, int] = ("", 0)

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def encrypted(self) -> bool:
        return self.writer.get_extra_info("sslcontext") is not None

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    async def read_request(self) -> Optional[bytes]:
        """
        Read one complete request.

        Returns:
            Raw request bytes, or None when the client closed the
            connection or went quiet on a keep-alive connection.

        Raises:
            TimeoutError: The first request did not arrive in time.
            HTTPParseError: Headers too large, a bad Content-Length or a
                Transfer-Encoding (501).
        """
        self.state = ConnectionState.READING
        wait = self.keep_alive_timeout if self.requests_handled else self.timeout

        try:
            head = await asyncio.wait_for(self.reader.readuntil(b"\r\n\r\n"), timeout=wait)
        except asyncio.TimeoutError:
            if self.requests_handled:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")
        except asyncio.IncompleteReadError as e:
            if e.partial.strip():
                raise HTTPParseError("Incomplete request: connection closed mid-headers")
            return None
        except asyncio.LimitOverrunError:
            raise HTTPParseError("Request header section too large", status_code=431)
        except (ConnectionResetError, BrokenPipeError):
            return None

        length = self._content_length(head)
        if len(head) + length > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(head) + length} bytes", status_code=413)

        body = b""
        if length:
            try:
                body = await asyncio.wait_for(self.reader.readexactly(length), timeout=self.timeout)
            except asyncio.IncompleteReadError as e:
                raise HTTPParseError(
                    f"Incomplete body: expected {length} bytes, got {len(e.partial)}"
                )
            except asyncio.TimeoutError:
                raise TimeoutError("Request body read timeout")

        self.last_activity = time.time()
        self.state = ConnectionState.PROCESSING
        return head + body

    @staticmethod
    def _content_length(head: bytes) -> int:
        """
        Find Content-Length in the raw header block (0 when absent).

        Bodies are only ever delimited by Content-Length. A request with a
        Transfer-Encoding is refused with 501 so its body is never read as
        the next request.
        """
        length = 0
        for line in head.decode("latin-1").split("\r\n")[1:]:
            name, sep, value = line.partition(":")
            if sep and name.strip().lower() == "transfer-encoding":
                raise HTTPParseError(
                    f"Unsupported Transfer-Encoding: {value.strip()}", status_code=501
                )
            if sep and name.strip().lower() == "content-length":
                try:
                    length = int(value.strip())
                except ValueError:
                    raise HTTPParseError(f"Invalid Content-Length: {value.strip()}")
                if length < 0:
                    raise HTTPParseError(f"Invalid Content-Length: {value.strip()}")
        return length

    def set_keep_alive(self) -> None:
        self.requests_handled += 1
        self.state = ConnectionState.KEEP_ALIVE

    async def close(self) -> None:
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSED
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError):
            pass
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False
