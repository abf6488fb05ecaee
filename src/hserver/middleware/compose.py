"""
=============================================================================
MIDDLEWARE COMPOSITION
=============================================================================

``compose`` turns an ordered list of middleware into one async function
that runs them as an onion:

    app.use(a)      async def a(ctx, next):  print(1); await next(); print(5)
    app.use(b)      async def b(ctx, next):  print(2); await next(); print(4)
    app.use(c)      async def c(ctx, next):  print(3)

    output: 1 2 3 4 5

    ┌─────────────────────────────────────────────────────────────────────┐
    │  a (before)                                                         │
    │  ┌───────────────────────────────────────────────────────────────┐  │
    │  │  b (before)                                                   │  │
    │  │  ┌─────────────────────────────────────────────────────────┐  │  │
    │  │  │  c   (does not call next: the onion stops here)          │  │  │
    │  │  └─────────────────────────────────────────────────────────┘  │  │
    │  │  b (after)                                                    │  │
    │  └───────────────────────────────────────────────────────────────┘  │
    │  a (after)                                                          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
DISPATCH
=============================================================================

Each call to ``next`` dispatches index i + 1. A shared "highest index
dispatched" counter makes a second ``next()`` from the same middleware fail
with ``NextCalledMultipleTimes`` instead of running downstream twice.

An exception raised anywhere downstream surfaces from ``await next()`` in
every upstream middleware, which may catch it and recover.

=============================================================================
HANDLER SHAPES
=============================================================================

Two authoring styles are accepted and normalized once, by ``convert``, when
the middleware is registered:

    CALLBACK   def / async def (ctx, next)
               returns a value or an awaitable

    GENERATOR  def (ctx, next) containing ``yield``
               ``yield next``       → run downstream, resume when done
               ``yield awaitable``  → await it, resume with its result
               ``yield generator``  → run it as a nested generator
               errors are thrown back in at the ``yield``

=============================================================================
"""

import functools
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..errors import NextCalledMultipleTimes

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Callable[[], Awaitable[Any]]], Awaitable[Any]]

_CONVERTED = "__hserver_converted__"


class HandlerShape(Enum):
    CALLBACK = "callback"
    GENERATOR = "generator"


def classify(fn: Callable) -> HandlerShape:
    """Tell generator middleware apart from everything else."""
    if inspect.isgeneratorfunction(fn):
        return HandlerShape.GENERATOR
    call = getattr(fn, "__call__", None)
    if call is not None and inspect.isgeneratorfunction(call):
        return HandlerShape.GENERATOR
    return HandlerShape.CALLBACK


def convert(fn: Callable) -> Handler:
    """
    Normalize a middleware into ``async (ctx, next) -> Any``.

    Raises:
        TypeError: ``fn`` is not callable.
    """
    if not callable(fn):
        raise TypeError("middleware must be a function")

    if getattr(fn, _CONVERTED, False):
        return fn

    shape = classify(fn)

    if shape is HandlerShape.GENERATOR:
        async def handler(ctx, next):
            return await _drive(fn(ctx, next), next)
    else:
        async def handler(ctx, next):
            result = fn(ctx, next)
            if inspect.isawaitable(result):
                result = await result
            return result

    functools.update_wrapper(handler, fn)
    setattr(handler, _CONVERTED, True)
    handler.shape = shape
    return handler


async def _drive(gen, next) -> Any:
    """
    Run a generator middleware to completion.

    Whatever the generator yields is resolved and sent back in; exceptions
    are thrown into it so its own try/except blocks see them.
    """
    try:
        yielded = gen.send(None)
    except StopIteration as stop:
        return stop.value

    while True:
        try:
            if yielded is next:
                value = await next()
            elif inspect.isgenerator(yielded):
                value = await _drive(yielded, next)
            elif inspect.isawaitable(yielded):
                value = await yielded
            else:
                raise TypeError(
                    f"generator middleware may only yield next, an awaitable "
                    f"or a generator, got {yielded!r}"
                )
        except Exception as e:
            try:
                yielded = gen.throw(e)
            except StopIteration as stop:
                return stop.value
            continue

        try:
            yielded = gen.send(value)
        except StopIteration as stop:
            return stop.value


def compose(middleware: Sequence[Callable]) -> Callable[..., Awaitable[Any]]:
    """
    Compose middleware into a single ``async dispatch(ctx, next=None)``.

    Args:
        middleware: Handlers in registration order (first = outermost)

    Returns:
        Coroutine function running the whole chain for one context. The
        optional ``next`` is a zero-argument continuation called after the
        last middleware, which lets a composed chain be nested inside
        another.

    Raises:
        TypeError: ``middleware`` is not a list, or holds a non-callable.
    """
    if not isinstance(middleware, (list, tuple)):
        raise TypeError("Middleware stack must be a list!")
    for fn in middleware:
        if not callable(fn):
            raise TypeError("Middleware must be composed of functions!")

    stack: List[Handler] = [convert(fn) for fn in middleware]

    async def dispatch_all(ctx, next: Optional[Callable] = None) -> Any:
        index = -1

        def dispatch(i: int) -> Awaitable[Any]:
            nonlocal index
            if i <= index:
                return _Rejected(NextCalledMultipleTimes())
            index = i

            if i == len(stack):
                return _finish(next)

            return stack[i](ctx, functools.partial(dispatch, i + 1))

        return await dispatch(0)

    dispatch_all.middleware = stack
    return dispatch_all


class _Rejected:
    """Awaitable that raises ``error`` only when awaited."""

    def __init__(self, error: Exception):
        self.error = error

    def __await__(self):
        raise self.error
        yield  # makes this a generator


async def _finish(next: Optional[Callable]) -> Any:
    if next is None:
        return None
    result = next()
    if inspect.isawaitable(result):
        result = await result
    return result
