"""
Raw incoming request as handed over by the transport.

This is the ``req`` half of a context: plain data, no behaviour beyond the
keep-alive rule. The request view (``hserver.request.Request``) computes
everything else from it on demand.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .headers import Headers


@dataclass(frozen=True)
class SocketInfo:
    """What the request view needs to know about the underlying socket."""

    encrypted: bool = False
    remote_address: Tuple[str, int] = ("", 0)

    @property
    def remote_ip(self) -> str:
        return self.remote_address[0] if self.remote_address else ""


@dataclass
class IncomingRequest:
    """
    A parsed request message.

    Attributes:
        method:  Upper-case method ("GET", "POST", ...)
        url:     Request target exactly as sent, query string included
        version: "HTTP/1.1" or "HTTP/1.0"
        headers: Case-insensitive header map; repeated headers are joined
                 with ", "
        body:    Raw body bytes (Content-Length delimited)
        socket:  Encryption flag and peer address
        raw:     Original bytes, kept for debugging
    """

    method: str
    url: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    socket: SocketInfo = field(default_factory=SocketInfo)
    raw: bytes = field(default=b"", repr=False)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.headers.get(name)
        if value is None:
            return default
        return ", ".join(value) if isinstance(value, list) else value

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless the client sends
        ``Connection: close``; HTTP/1.0 closes unless it sends
        ``Connection: keep-alive``.
        """
        connection = (self.get_header("connection") or "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"
