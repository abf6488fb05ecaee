"""
=============================================================================
REQUEST CONTEXT
=============================================================================

One ``Context`` per request. It bundles the raw request/response pair with
the two views over them and exposes the most used view members directly:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          Context                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ctx.method, ctx.path, ctx.query, ctx.get(...)  ──► ctx.request    │
    │   ctx.status, ctx.body, ctx.type, ctx.set(...)   ──► ctx.response   │
    │                                                                      │
    │   ctx.req  raw IncomingRequest ─┐                                    │
    │   ctx.res  raw ServerResponse  ─┴── shared by both views            │
    │                                                                      │
    │   ctx.state  scratch dict for passing data between middleware       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The shortcuts are descriptors that read and write straight through to the
owning view, so ``ctx.status = 404`` and ``ctx.response.status = 404`` are
the same operation and no state is duplicated.

=============================================================================
"""

import errno
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

from .errors import HTTPError, create_error
from .http.status_codes import is_known, status_phrase
from .request import Request
from .response import Response

logger = logging.getLogger(__name__)


class Delegate:
    """
    Descriptor forwarding an attribute to ``getattr(ctx, target)``.

    Args:
        target: "request" or "response"
        writable: Whether assignment is forwarded too
    """

    def __init__(self, target: str, writable: bool = False):
        self.target = target
        self.writable = writable
        self.name = None

    def __set_name__(self, owner, name: str) -> None:
        self.name = name

    def __get__(self, ctx, owner=None):
        if ctx is None:
            return self
        return getattr(getattr(ctx, self.target), self.name)

    def __set__(self, ctx, value) -> None:
        if not self.writable:
            raise AttributeError(f"ctx.{self.name} is read-only")
        setattr(getattr(ctx, self.target), self.name, value)


class Context:
    """
    Per-request context handed to every middleware.

    Attributes:
        app: The application handling the request
        req: Raw incoming request
        res: Raw server response
        request: Request view
        response: Response view
        state: Free-form dict shared by the middleware of this request
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST SHORTCUTS (read-only)
    # ─────────────────────────────────────────────────────────────────────

    url = Delegate("request")
    method = Delegate("request")
    header = Delegate("request")
    headers = Delegate("request")
    origin = Delegate("request")
    href = Delegate("request")
    protocol = Delegate("request")
    secure = Delegate("request")
    host = Delegate("request")
    hostname = Delegate("request")
    port = Delegate("request")
    path = Delegate("request")
    pathname = Delegate("request")
    query = Delegate("request")
    querystring = Delegate("request")
    search = Delegate("request")
    ip = Delegate("request")
    ips = Delegate("request")
    accept = Delegate("request")
    accept_encoding = Delegate("request")
    accept_charset = Delegate("request")
    accept_language = Delegate("request")

    get = Delegate("request")
    is_ = Delegate("request")
    accepts = Delegate("request")
    accepts_encodings = Delegate("request")
    accepts_charsets = Delegate("request")
    accepts_languages = Delegate("request")

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE SHORTCUTS
    # ─────────────────────────────────────────────────────────────────────

    status = Delegate("response", writable=True)
    body = Delegate("response", writable=True)
    message = Delegate("response", writable=True)
    length = Delegate("response", writable=True)
    type = Delegate("response", writable=True)
    last_modified = Delegate("response", writable=True)
    etag = Delegate("response", writable=True)

    header_sent = Delegate("response")
    writable = Delegate("response")

    set = Delegate("response")
    append = Delegate("response")
    remove = Delegate("response")

    def __init__(self, app, req, res):
        self.app = app
        self.req = req
        self.res = res
        self.request = Request(app, req, res)
        self.response = Response(app, req, res)
        self.request.ctx = self
        self.response.ctx = self
        self.request.response = self.response
        self.response.request = self.request
        self.state: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"<Context {self.method} {self.url} -> {self.status}>"

    # =========================================================================
    # ERRORS
    # =========================================================================

    def error(self, *args: Any, **props: Any) -> BaseException:
        """
        Build a status-bearing error without touching the response.

        Status and message may come in either order; a missing status
        resolves to 500 when the error is handled.

            raise ctx.error("Invalid token", 401)
            raise ctx.error(404)
        """
        return create_error(*args, **props)

    def throw(self, *args: Any, **kwargs: Any) -> None:
        """Raise ``self.error(...)``."""
        raise self.error(*args, **kwargs)

    def onerror(self, error) -> None:
        """
        Turn a failure into a response.

        This is the single place where errors from the middleware pipeline
        and from body streams end up:

            1. ``None`` is ignored; a non-exception is wrapped.
            2. A missing status is recovered from the message if it is a
               number.
            3. The app "error" event fires.
            4. If headers are already out (or the client is gone) nothing
               more can be written: the error is flagged with
               ``header_sent`` and handling stops.
            5. Otherwise headers set by middleware are dropped (the
               connection-level Keep-Alive stays), the error's own
               ``headers`` mapping is applied, and a text/plain response is
               written: 404 for missing files, 500 for unknown statuses,
               and the error message only when the error is exposed.
        """
        if error is None:
            return

        if not isinstance(error, BaseException):
            error = HTTPError(f"non-error thrown: {error!r}")

        status = getattr(error, "status", None)
        if not isinstance(status, int) or isinstance(status, bool):
            status = _status_from_message(error)
            _set_attr(error, "status", status)

        self.app.emit("error", error, self)

        if self.header_sent or not self.writable:
            _set_attr(error, "header_sent", True)
            return

        for name in list(self.res.get_headers()):
            if name.lower() != "keep-alive":
                self.res.remove_header(name)
        extra = getattr(error, "headers", None)
        if isinstance(extra, Mapping):
            self.set(dict(extra))

        self.type = "text"

        if isinstance(error, FileNotFoundError) or getattr(error, "errno", None) == errno.ENOENT:
            status = 404

        if not is_known(status):
            status = 500

        if getattr(error, "expose", False):
            text = str(error)
        else:
            text = status_phrase(status)
        payload = text.encode("utf-8")

        self.status = status
        self.length = len(payload)
        self.res.end(payload)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
            "app": self.app.to_dict(),
        }


def _status_from_message(error: BaseException) -> Optional[int]:
    try:
        return int(str(error).strip())
    except ValueError:
        return None


def _set_attr(error: BaseException, name: str, value) -> None:
    try:
        setattr(error, name, value)
    except AttributeError:
        logger.debug(f"Cannot set {name} on {type(error).__name__}")
