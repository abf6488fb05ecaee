"""
=============================================================================
STATIC FILE MIDDLEWARE
=============================================================================

Serves files from a directory.

    app.use(StaticFiles("./public", prefix="/static", max_age=3600))

    GET /static/css/site.css   → ./public/css/site.css
    GET /static/docs           → 301, Location: /static/docs/
    GET /static/docs/          → ./public/docs/index.html
    GET /static/missing.txt    → 404
    GET /static/%2e%2e/secret  → 403
    GET /elsewhere             → passed on to the next middleware

=============================================================================
FLOW
=============================================================================

    1. Method not in ``methods`` or path outside ``prefix`` → await next()
    2. Resolve the path under ``root``; refuse anything that escapes it
    3. Directory: redirect to the slash form, else serve ``index``
    4. Missing file → ctx.throw(404)
    5. Set Content-Type, Content-Length, Last-Modified, Cache-Control and
       (optionally) ETag; If-None-Match hit → 304
    6. Body = FileStream(path), opened lazily when the response is sent

=============================================================================
"""

import logging
from pathlib import Path
from typing import Iterable, Union
from urllib.parse import unquote

from ..http.mime_types import get_mime_type
from ..streams import FileStream
from .base import Middleware, Next

logger = logging.getLogger(__name__)


class StaticFiles(Middleware):
    """
    Static file middleware.

    Args:
        root: Directory to serve. Every served file must resolve inside it.
        prefix: URL prefix to strip ("" serves from the site root)
        index: File served for directory requests
        methods: Methods this middleware answers
        max_age: Cache-Control max-age in seconds (0 disables the header)
        etag: Send an mtime/size ETag and honour If-None-Match
    """

    def __init__(
        self,
        root: Union[str, Path],
        prefix: str = "",
        index: str = "index.html",
        methods: Iterable[str] = ("GET", "HEAD"),
        max_age: int = 0,
        etag: bool = False,
    ):
        self.root = Path(root).resolve()
        self.prefix = prefix.rstrip("/")
        self.index = index
        self.methods = {m.upper() for m in methods}
        self.max_age = max_age
        self.etag = etag

        if not self.root.is_dir():
            raise ValueError(f"Static root directory does not exist: {root}")

    async def __call__(self, ctx, next: Next) -> None:
        if ctx.method not in self.methods:
            await next()
            return

        pathname = unquote(ctx.path)
        if self.prefix:
            if pathname != self.prefix and not pathname.startswith(self.prefix + "/"):
                await next()
                return
            relative = pathname[len(self.prefix):]
        else:
            relative = pathname

        full_path = (self.root / relative.lstrip("/")).resolve()
        try:
            full_path.relative_to(self.root)
        except ValueError:
            logger.warning(f"Path traversal attempt: {pathname}")
            ctx.throw(403)

        if full_path.is_dir():
            if not ctx.path.endswith("/"):
                ctx.status = 301
                ctx.set("Location", ctx.path + "/" + ctx.search)
                ctx.body = f"Redirecting to {ctx.path}/"
                return
            full_path = full_path / self.index

        if not full_path.is_file():
            ctx.throw(404)

        self._serve(ctx, full_path)

    def _serve(self, ctx, path: Path) -> None:
        stat = path.stat()

        if self.etag:
            tag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
            ctx.etag = tag
            if ctx.get("If-None-Match") == tag:
                ctx.status = 304
                return

        ctx.type = get_mime_type(path)
        ctx.last_modified = stat.st_mtime
        if self.max_age:
            ctx.set("Cache-Control", f"public, max-age={self.max_age}")

        ctx.body = FileStream(path)
        ctx.length = stat.st_size


def serve_static(root: Union[str, Path], **kwargs) -> StaticFiles:
    """Shorthand for ``StaticFiles(root, **kwargs)``."""
    return StaticFiles(root, **kwargs)
