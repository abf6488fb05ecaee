"""
=============================================================================
RESPONSE VIEW
=============================================================================

The mutable response half of a context. It wraps the transport's
``ServerResponse`` (``res``) and keeps status, body and headers consistent
with each other.

=============================================================================
THE BODY SETTER
=============================================================================

    ctx.body = value
        │
        ├── None            → status 204 (unless already 204/205/304),
        │                     drop Content-Type / Content-Length /
        │                     Transfer-Encoding
        │
        ├── status not set explicitly → 200
        │
        ├── str             → text/html if it starts with "<", else
        │                     text/plain; Content-Length = utf-8 bytes
        ├── bytes           → application/octet-stream; Content-Length
        ├── stream          → application/octet-stream; Content-Length
        │                     dropped if it replaced another body;
        │                     ctx.onerror observes stream failures
        └── anything else   → application/json; Content-Length dropped

A Content-Type chosen by the caller is never overwritten by the inference
above.

=============================================================================
THE STATUS SETTER
=============================================================================

    ctx.status = 204
        │
        ├── not an int in 100..999 → 500
        ├── headers already sent   → ignored
        ├── message = reason phrase
        └── 204 / 205 / 304        → body cleared

A status assigned by middleware is "explicit"; the body setter's default
200 never overrides it.

=============================================================================
"""

import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Optional

from .http.dates import format_http_date, parse_http_date
from .http.headers import HeaderValue
from .http.mime_types import charset_for, lookup
from .http.status_codes import is_empty, status_phrase
from .streams import is_stream, release_stream

logger = logging.getLogger(__name__)

_HTML_START = re.compile(r"^\s*<")
_CHARSET_PARAM = re.compile(r";\s*charset\s*=\s*\"?([^\";]+)\"?", re.IGNORECASE)


class Response:
    """
    Response view over a ``ServerResponse``.

    Attributes:
        app: Owning application
        req: Raw incoming request
        res: Raw server response (the single write handle)
        ctx: Context this view belongs to
        request: Sibling request view
    """

    def __init__(self, app, req, res):
        self.app = app
        self.req = req
        self.res = res
        self.ctx = None
        self.request = None
        self._body: Any = None
        self._explicit_status = False
        self._pending_charset: Optional[str] = None
        self.stream_error_listener = None

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.message!r}>"

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def status(self) -> int:
        return self.res.status_code

    @status.setter
    def status(self, code) -> None:
        self._set_status(code, explicit=True)

    def _set_status(self, code, explicit: bool) -> None:
        if isinstance(code, bool) or not isinstance(code, int) or not 100 <= code <= 999:
            logger.debug(f"Invalid status {code!r}, using 500")
            code = 500

        if self.header_sent:
            return

        if explicit:
            self._explicit_status = True

        self.res.status_code = int(code)
        self.res.status_message = status_phrase(code) or ""

        if self._body is not None and is_empty(code):
            self.body = None

    @property
    def message(self) -> str:
        return self.res.status_message or status_phrase(self.status) or ""

    @message.setter
    def message(self, value: str) -> None:
        self.res.status_message = value or ""

    # =========================================================================
    # BODY
    # =========================================================================

    @property
    def body(self) -> Any:
        return self._body

    @body.setter
    def body(self, value: Any) -> None:
        original = self._body
        self._body = value

        if original is not value and is_stream(original):
            release_stream(original)

        if self.header_sent:
            return

        if value is None:
            if not is_empty(self.status):
                self._set_status(204, explicit=False)
            self.remove("Content-Type")
            self.remove("Content-Length")
            self.remove("Transfer-Encoding")
            return

        if not self._explicit_status:
            self._set_status(200, explicit=False)

        has_type = self.has("Content-Type")

        if isinstance(value, str):
            if not has_type:
                self.type = "html" if _HTML_START.match(value) else "text"
            self.length = len(value.encode("utf-8"))
            return

        if isinstance(value, (bytes, bytearray, memoryview)):
            if not has_type:
                self.type = "bin"
            self.length = len(value)
            return

        if is_stream(value):
            if self.ctx is not None:
                self.stream_error_listener = self.ctx.onerror
            if original is not None and original is not value:
                self.remove("Content-Length")
            if not has_type:
                self.type = "bin"
            return

        self.remove("Content-Length")
        if not has_type:
            self.type = "json"

    # =========================================================================
    # LENGTH
    # =========================================================================

    @property
    def length(self) -> Optional[int]:
        """
        Content-Length as an int.

        Without the header the value is derived from the body; the header
        itself is never written by this getter. None for streams or when
        there is no body.
        """
        value = self.get("Content-Length")
        if value:
            try:
                return int(value)
            except (TypeError, ValueError):
                return 0

        body = self._body
        if body is None or is_stream(body):
            return None
        if isinstance(body, str):
            return len(body.encode("utf-8"))
        if isinstance(body, (bytes, bytearray, memoryview)):
            return len(body)
        return len(json.dumps(body).encode("utf-8"))

    @length.setter
    def length(self, value: int) -> None:
        self.set("Content-Length", str(int(value)))

    # =========================================================================
    # CONTENT TYPE AND CHARSET
    # =========================================================================

    @property
    def type(self) -> str:
        """Content-Type without parameters ("" when unset)."""
        value = self.get("Content-Type")
        if not value:
            return ""
        return value.split(";", 1)[0].strip()

    @type.setter
    def type(self, value: Optional[str]) -> None:
        if not value:
            self.remove("Content-Type")
            return

        if ";" in value:
            self.set("Content-Type", value)
            return

        mime = lookup(value) or value
        charset = self.charset or self._pending_charset or charset_for(mime)
        self._pending_charset = None
        self.set("Content-Type", f"{mime}; charset={charset}" if charset else mime)

    @property
    def charset(self) -> str:
        value = self.get("Content-Type")
        if not value:
            return ""
        match = _CHARSET_PARAM.search(value)
        return match.group(1).strip() if match else ""

    @charset.setter
    def charset(self, value: Optional[str]) -> None:
        value = value or "utf-8"
        mime = self.type
        if not mime:
            self._pending_charset = value
            return
        self.set("Content-Type", f"{mime}; charset={value}")

    # =========================================================================
    # CACHING HEADERS
    # =========================================================================

    @property
    def last_modified(self) -> Optional[datetime]:
        return parse_http_date(self.get("Last-Modified"))

    @last_modified.setter
    def last_modified(self, value) -> None:
        if isinstance(value, str):
            parsed = parse_http_date(value)
            if parsed is None:
                raise ValueError(f"Invalid HTTP date: {value!r}")
            value = parsed
        self.set("Last-Modified", format_http_date(value))

    @property
    def etag(self) -> str:
        return self.get("ETag")

    @etag.setter
    def etag(self, value: str) -> None:
        value = str(value)
        if not value.startswith(("W/", '"')):
            value = f'"{value}"'
        self.set("ETag", value)

    # =========================================================================
    # TRANSPORT STATE
    # =========================================================================

    @property
    def header_sent(self) -> bool:
        return self.res.headers_sent

    @property
    def writable(self) -> bool:
        return self.res.writable

    @property
    def socket(self):
        return self.res.socket

    # =========================================================================
    # HEADER ACCESS
    # =========================================================================

    @property
    def header(self) -> Dict[str, HeaderValue]:
        """Snapshot of the response headers, keyed by lowercased name."""
        return self.res.get_headers()

    headers = header

    def has(self, field: str) -> bool:
        return self.res.has_header(field)

    def get(self, field: str) -> HeaderValue:
        """Header value, or "" when unset."""
        value = self.res.get_header(field)
        return "" if value is None else value

    def set(self, field, value=None) -> None:
        """
        Set one header, or several from a mapping.

            ctx.set("Cache-Control", "no-cache")
            ctx.set({"X-A": "1", "X-B": "2"})
        """
        if self.header_sent:
            return
        if isinstance(field, Mapping):
            for name, item in field.items():
                self.set(name, item)
            return
        if isinstance(value, (list, tuple)):
            value = [str(item) for item in value]
        else:
            value = str(value)
        self.res.set_header(field, value)

    def append(self, field: str, value) -> None:
        """Add a value, keeping earlier values for the same header."""
        previous = self.res.get_header(field)
        if previous is not None:
            previous = list(previous) if isinstance(previous, list) else [previous]
            added = list(value) if isinstance(value, (list, tuple)) else [value]
            value = previous + added
        self.set(field, value)

    def remove(self, field: str) -> None:
        if self.header_sent:
            return
        self.res.remove_header(field)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "header": self.header,
        }
