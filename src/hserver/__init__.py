"""
=============================================================================
HSERVER
=============================================================================

A small HTTP server toolkit built around two ideas:

1. A MIDDLEWARE ONION
   ``app.use(fn)`` registers ``(ctx, next)`` handlers that run in order on
   the way in and in reverse on the way out. Callback, coroutine and
   generator styles are all accepted.

2. A PER-REQUEST CONTEXT
   ``ctx`` unifies a request view and a response view behind one object:
   ``ctx.path``, ``ctx.query``, ``ctx.status``, ``ctx.body``,
   ``ctx.type`` ... Setting ``ctx.body`` keeps status, Content-Type and
   Content-Length consistent automatically.

    from hserver import Application

    app = Application()

    async def hello(ctx, next):
        ctx.body = {"hello": "world"}

    app.use(hello)
    app.listen(3000)

Errors raised anywhere in the onion end up in ``ctx.onerror``, which emits
the app "error" event and writes a plain-text error response if headers
have not gone out yet.

=============================================================================
"""

__version__ = "1.0.0"

from .application import Application, create_app
from .config import AppConfig
from .context import Context
from .errors import HTTPError, NextCalledMultipleTimes, create_error
from .middleware import Middleware, compose, convert
from .request import Request
from .response import Response

__all__ = [
    "Application",
    "create_app",
    "AppConfig",
    "Context",
    "HTTPError",
    "NextCalledMultipleTimes",
    "create_error",
    "Middleware",
    "compose",
    "convert",
    "Request",
    "Response",
    "__version__",
]
