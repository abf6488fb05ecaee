"""
=============================================================================
REQUEST VIEW
=============================================================================

Read-only accessors over the raw ``IncomingRequest``. Nothing is cached:
every property is computed from ``req`` when it is read, so a middleware
that rewrites ``req.url`` is seen by everything downstream.

=============================================================================
PROXY-AWARE ACCESSORS
=============================================================================

Behind a reverse proxy the socket peer is the proxy, not the client. When
``app.proxy`` is True the X-Forwarded-* headers take precedence:

    ┌────────────┬──────────────────────────────┬─────────────────────────┐
    │ accessor   │ app.proxy = True             │ otherwise               │
    ├────────────┼──────────────────────────────┼─────────────────────────┤
    │ host       │ X-Forwarded-Host (1st token) │ Host header             │
    │ protocol   │ X-Forwarded-Proto (1st)      │ "https" if TLS else     │
    │            │                              │ "http"                  │
    │ ips        │ X-Forwarded-For tokens       │ []                      │
    │ ip         │ ips[0]                       │ socket peer address     │
    └────────────┴──────────────────────────────┴─────────────────────────┘

A TLS socket always reports "https".

=============================================================================
"""

from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlsplit

from .http.negotiation import (
    first_token,
    negotiate_token,
    negotiate_type,
    parse_tokens,
    type_is,
)


class Request:
    """
    Request view over an ``IncomingRequest``.

    Attributes:
        app: Owning application (for the proxy flag)
        req: Raw incoming request
        res: Raw server response
        ctx: Context this view belongs to
        response: Sibling response view
    """

    def __init__(self, app, req, res):
        self.app = app
        self.req = req
        self.res = res
        self.ctx = None
        self.response = None

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"

    # =========================================================================
    # REQUEST LINE
    # =========================================================================

    @property
    def method(self) -> str:
        return self.req.method

    @property
    def url(self) -> str:
        return self.req.url

    @property
    def path(self) -> str:
        return urlsplit(self.req.url).path or "/"

    @property
    def pathname(self) -> str:
        return self.path

    @property
    def querystring(self) -> str:
        return urlsplit(self.req.url).query

    @property
    def search(self) -> str:
        qs = self.querystring
        return f"?{qs}" if qs else ""

    @property
    def query(self) -> Dict[str, Union[str, List[str]]]:
        """
        Parsed query string; repeated keys become lists.

            /items?tag=a&tag=b&page=2 → {"tag": ["a", "b"], "page": "2"}
        """
        parsed = parse_qs(self.querystring, keep_blank_values=True)
        return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def header(self):
        return self.req.headers

    @property
    def headers(self):
        return self.req.headers

    def get(self, field: str) -> str:
        """
        Case-insensitive header lookup; "" when absent.

        "Referer" and "Referrer" are interchangeable.
        """
        name = field.lower()
        if name in ("referer", "referrer"):
            return self.req.get_header("referrer") or self.req.get_header("referer") or ""
        return self.req.get_header(name) or ""

    # =========================================================================
    # HOST, PROTOCOL, CLIENT ADDRESS
    # =========================================================================

    @property
    def _proxy(self) -> bool:
        return bool(getattr(self.app, "proxy", False))

    @property
    def protocol(self) -> str:
        if self.req.socket.encrypted:
            return "https"
        if self._proxy:
            proto = first_token(self.get("X-Forwarded-Proto"))
            if proto:
                return proto.lower()
        return "http"

    @property
    def secure(self) -> bool:
        return self.protocol == "https"

    @property
    def host(self) -> str:
        """host[:port]; from X-Forwarded-Host when behind a trusted proxy."""
        if self._proxy:
            forwarded = first_token(self.get("X-Forwarded-Host"))
            if forwarded:
                return forwarded
        return self.get("Host")

    @property
    def hostname(self) -> str:
        host = self.host
        if not host:
            return ""
        if host.startswith("["):
            # IPv6 literal
            end = host.find("]")
            return host[:end + 1] if end != -1 else host
        return host.split(":", 1)[0]

    @property
    def port(self) -> Optional[int]:
        host = self.host
        if host.startswith("["):
            host = host[host.find("]") + 1:]
        _, sep, port = host.rpartition(":")
        if sep and port.isdigit():
            return int(port)
        return None

    @property
    def origin(self) -> str:
        return f"{self.protocol}://{self.host}"

    @property
    def href(self) -> str:
        if self.url.startswith(("http://", "https://")):
            return self.url
        return self.origin + self.url

    @property
    def ips(self) -> List[str]:
        if not self._proxy:
            return []
        return [ip.strip() for ip in self.get("X-Forwarded-For").split(",") if ip.strip()]

    @property
    def ip(self) -> str:
        ips = self.ips
        return ips[0] if ips else self.req.socket.remote_ip

    # =========================================================================
    # BODY DESCRIPTION
    # =========================================================================

    @property
    def type(self) -> str:
        """Declared Content-Type without parameters ("" when absent)."""
        value = self.get("Content-Type")
        return value.split(";", 1)[0].strip().lower() if value else ""

    @property
    def charset(self) -> str:
        value = self.get("Content-Type")
        for param in value.split(";")[1:]:
            name, _, charset = param.partition("=")
            if name.strip().lower() == "charset":
                return charset.strip().strip('"')
        return ""

    @property
    def length(self) -> Optional[int]:
        value = self.get("Content-Length")
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def has_body(self) -> bool:
        if self.get("Transfer-Encoding"):
            return True
        return bool(self.length)

    def is_(self, *types: str) -> Union[str, bool, None]:
        """
        Check the request's Content-Type.

        Returns:
            None when the request has no body, False when it has one but no
            Content-Type, the declared type when called without arguments,
            otherwise the first matching candidate or False.

            # Content-Type: application/json
            ctx.is_("json")             → "json"
            ctx.is_("text/*", "json")   → "json"
            ctx.is_("html")             → False
        """
        if not self.has_body:
            return None

        declared = self.type
        if not declared:
            return False
        if not types:
            return declared
        return type_is(declared, types)

    # =========================================================================
    # CONTENT NEGOTIATION
    # =========================================================================

    @property
    def accept(self) -> List[str]:
        return parse_tokens(self.get("Accept"))

    @property
    def accept_encoding(self) -> List[str]:
        return parse_tokens(self.get("Accept-Encoding"))

    @property
    def accept_charset(self) -> List[str]:
        return parse_tokens(self.get("Accept-Charset")) or ["*"]

    @property
    def accept_language(self) -> List[str]:
        return parse_tokens(self.get("Accept-Language"))

    def accepts(self, *types: str) -> Union[str, bool, List[str]]:
        """
        Which of ``types`` the client accepts, in the client's order.

        Without arguments the parsed Accept list is returned.
        """
        if not types:
            return self.accept
        return negotiate_type(self.accept, types)

    def accepts_encodings(self, *encodings: str) -> Union[str, bool, List[str]]:
        if not encodings:
            return self.accept_encoding
        return negotiate_token(self.accept_encoding, encodings)

    def accepts_charsets(self, *charsets: str) -> Union[str, bool, List[str]]:
        if not charsets:
            return self.accept_charset
        return negotiate_token(self.accept_charset, charsets)

    def accepts_languages(self, *languages: str) -> Union[str, bool, List[str]]:
        if not languages:
            return self.accept_language
        return negotiate_token(self.accept_language, languages, prefix_match=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "header": self.header.to_dict(),
        }
