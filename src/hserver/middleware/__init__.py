"""
=============================================================================
MIDDLEWARE
=============================================================================

Middleware is an ``(ctx, next)`` callable. Registered with ``app.use`` in
order, they wrap each other like the layers of an onion: the first one
registered sees the request first and the response last.

    async def timer(ctx, next):
        start = time.perf_counter()
        await next()                               # everything downstream
        ctx.set("X-Response-Time", f"{(time.perf_counter() - start) * 1000:.1f}ms")

This package holds the composer and two ready-made middleware:

    compose       onion dispatch, handler normalization
    AccessLogger  access log with timing and request ids
    StaticFiles   files from a directory

=============================================================================
"""

from .base import Middleware, Next
from .compose import HandlerShape, classify, compose, convert
from .logger import AccessLogger, RequestLog
from .static import StaticFiles, serve_static

__all__ = [
    "Middleware",
    "Next",
    "HandlerShape",
    "classify",
    "compose",
    "convert",
    "AccessLogger",
    "RequestLog",
    "StaticFiles",
    "serve_static",
]
