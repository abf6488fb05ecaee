"""
=============================================================================
CLASS-BASED MIDDLEWARE
=============================================================================

Most middleware is a plain ``async def (ctx, next)``. When a middleware
carries configuration (a root directory, a log format) it reads better as
a class:

    class PoweredBy(Middleware):
        def __init__(self, value: str = "hserver"):
            self.value = value

        async def __call__(self, ctx, next):
            await next()
            ctx.set("X-Powered-By", self.value)

Instances are ordinary callables, so ``app.use(PoweredBy())`` treats them
exactly like function middleware.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

# The continuation passed to every middleware: calling it runs the rest of
# the pipeline and returns an awaitable that settles when downstream is done.
Next = Callable[[], Awaitable[Any]]


class Middleware(ABC):
    """
    Abstract base class for middleware objects.

    Subclasses implement ``__call__(ctx, next)`` as a coroutine. Code before
    ``await next()`` runs on the way in, code after it on the way out;
    returning without calling ``next`` short-circuits the pipeline.
    """

    @abstractmethod
    async def __call__(self, ctx, next: Next) -> Any:
        """
        Process one request.

        Args:
            ctx: The request context
            next: Continuation for the downstream middleware
        """

    @property
    def name(self) -> str:
        """Middleware name for logging."""
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"<{self.name}>"
