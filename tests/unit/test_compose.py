"""
Unit tests for middleware composition.
"""

import asyncio
import gc
import warnings

import pytest

from hserver.errors import NextCalledMultipleTimes
from hserver.middleware import HandlerShape, Middleware, classify, compose, convert


class Ctx:
    """Minimal context: compose never looks inside it."""

    def __init__(self):
        self.calls = []


class TestCompose:
    """Tests for onion ordering and dispatch."""

    @pytest.mark.asyncio
    async def test_onion_order(self):
        """Upstream code after next() runs in reverse order."""

        async def a(ctx, next):
            ctx.calls.append(1)
            await next()
            ctx.calls.append(6)

        async def b(ctx, next):
            ctx.calls.append(2)
            await next()
            ctx.calls.append(5)

        async def c(ctx, next):
            ctx.calls.append(3)
            await next()
            ctx.calls.append(4)

        ctx = Ctx()
        await compose([a, b, c])(ctx)

        assert ctx.calls == [1, 2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_short_circuit(self):
        """A middleware that skips next() stops the chain."""

        async def stop(ctx, next):
            ctx.calls.append("stop")

        async def never(ctx, next):
            ctx.calls.append("never")

        ctx = Ctx()
        await compose([stop, never])(ctx)

        assert ctx.calls == ["stop"]

    @pytest.mark.asyncio
    async def test_empty_stack(self):
        """An empty stack resolves to None."""
        assert await compose([])(Ctx()) is None

    @pytest.mark.asyncio
    async def test_trailing_next(self):
        """The optional continuation runs after the last middleware."""
        ctx = Ctx()

        async def a(ctx, next):
            ctx.calls.append("a")
            await next()

        async def tail():
            ctx.calls.append("tail")

        await compose([a])(ctx, tail)

        assert ctx.calls == ["a", "tail"]

    @pytest.mark.asyncio
    async def test_nested_compose(self):
        """A composed chain can be used as a middleware itself."""

        async def a(ctx, next):
            ctx.calls.append("a")
            await next()

        async def b(ctx, next):
            ctx.calls.append("b")
            await next()

        async def c(ctx, next):
            ctx.calls.append("c")

        ctx = Ctx()
        await compose([compose([a, b]), c])(ctx)

        assert ctx.calls == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_return_value(self):
        """The outermost return value is the pipeline's result."""

        async def a(ctx, next):
            return await next()

        async def b(ctx, next):
            return "done"

        assert await compose([a, b])(Ctx()) == "done"

    @pytest.mark.asyncio
    async def test_error_propagates_upstream(self):
        """An error downstream surfaces from await next()."""

        async def outer(ctx, next):
            try:
                await next()
            except ValueError as e:
                ctx.calls.append(f"caught {e}")

        async def inner(ctx, next):
            raise ValueError("boom")

        ctx = Ctx()
        await compose([outer, inner])(ctx)

        assert ctx.calls == ["caught boom"]

    @pytest.mark.asyncio
    async def test_error_rejects_pipeline(self):
        """An uncaught error rejects the composed call."""

        async def fail(ctx, next):
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError, match="nope"):
            await compose([fail])(Ctx())

    @pytest.mark.asyncio
    async def test_next_called_twice(self):
        """A second next() from the same middleware fails."""

        async def twice(ctx, next):
            await next()
            await next()

        with pytest.raises(NextCalledMultipleTimes, match="next\\(\\) called multiple times"):
            await compose([twice])(Ctx())

    @pytest.mark.asyncio
    async def test_next_twice_does_not_rerun_downstream(self):
        """Downstream runs once even when next() is called twice."""

        async def twice(ctx, next):
            await next()
            try:
                await next()
            except NextCalledMultipleTimes:
                ctx.calls.append("rejected")

        async def downstream(ctx, next):
            ctx.calls.append("downstream")

        ctx = Ctx()
        await compose([twice, downstream])(ctx)

        assert ctx.calls == ["downstream", "rejected"]

    @pytest.mark.asyncio
    async def test_unawaited_second_next_is_silent(self):
        """A second next() that is never awaited leaves nothing pending."""
        pending = []

        async def twice(ctx, next):
            await next()
            next()
            pending.append(next())

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            await compose([twice])(Ctx())
            gc.collect()

        assert not [w for w in caught if issubclass(w.category, RuntimeWarning)]
        with pytest.raises(NextCalledMultipleTimes):
            await pending.pop()

    @pytest.mark.asyncio
    async def test_each_dispatch_has_own_index(self):
        """The same composed function can run many contexts."""

        async def a(ctx, next):
            ctx.calls.append("a")
            await next()

        pipeline = compose([a])
        first, second = Ctx(), Ctx()
        await asyncio.gather(pipeline(first), pipeline(second))

        assert first.calls == ["a"]
        assert second.calls == ["a"]

    def test_rejects_non_list(self):
        """The stack must be a list."""
        with pytest.raises(TypeError, match="Middleware stack must be a list!"):
            compose("not a list")

    def test_rejects_non_callable(self):
        """Every entry must be callable."""
        with pytest.raises(TypeError, match="Middleware must be composed of functions!"):
            compose([lambda ctx, next: None, 42])

    def test_exposes_normalized_stack(self):
        async def a(ctx, next):
            pass

        pipeline = compose([a])

        assert len(pipeline.middleware) == 1
        assert pipeline.middleware[0].__name__ == "a"


class TestHandlerShapes:
    """Tests for convert() and the supported middleware styles."""

    def test_classify(self):
        def gen(ctx, next):
            yield next

        async def coro(ctx, next):
            pass

        def plain(ctx, next):
            pass

        assert classify(gen) is HandlerShape.GENERATOR
        assert classify(coro) is HandlerShape.CALLBACK
        assert classify(plain) is HandlerShape.CALLBACK

    def test_convert_is_idempotent(self):
        """Converting a converted handler returns it unchanged."""

        async def a(ctx, next):
            pass

        once = convert(a)

        assert convert(once) is once
        assert once.shape is HandlerShape.CALLBACK

    def test_convert_rejects_non_callable(self):
        with pytest.raises(TypeError, match="middleware must be a function"):
            convert("nope")

    @pytest.mark.asyncio
    async def test_plain_function(self):
        """Synchronous middleware may return next()'s awaitable."""

        def sync(ctx, next):
            ctx.calls.append("sync")
            return next()

        async def last(ctx, next):
            ctx.calls.append("last")

        ctx = Ctx()
        await compose([sync, last])(ctx)

        assert ctx.calls == ["sync", "last"]

    @pytest.mark.asyncio
    async def test_generator_middleware(self):
        """yield next runs downstream and resumes afterwards."""

        def gen(ctx, next):
            ctx.calls.append("before")
            yield next
            ctx.calls.append("after")

        async def inner(ctx, next):
            ctx.calls.append("inner")

        ctx = Ctx()
        await compose([gen, inner])(ctx)

        assert ctx.calls == ["before", "inner", "after"]

    @pytest.mark.asyncio
    async def test_generator_yields_awaitable(self):
        """A yielded awaitable is awaited and its result sent back in."""

        async def compute():
            return 21

        def gen(ctx, next):
            value = yield compute()
            ctx.calls.append(value * 2)

        ctx = Ctx()
        await compose([gen])(ctx)

        assert ctx.calls == [42]

    @pytest.mark.asyncio
    async def test_generator_delegates_to_generator(self):
        """A yielded generator runs as a nested generator."""

        def helper(ctx, next):
            ctx.calls.append("helper")
            yield next

        def gen(ctx, next):
            yield helper(ctx, next)
            ctx.calls.append("after")

        async def inner(ctx, next):
            ctx.calls.append("inner")

        ctx = Ctx()
        await compose([gen, inner])(ctx)

        assert ctx.calls == ["helper", "inner", "after"]

    @pytest.mark.asyncio
    async def test_generator_sees_downstream_errors(self):
        """Errors are thrown back into the generator at its yield."""

        def gen(ctx, next):
            try:
                yield next
            except KeyError:
                ctx.calls.append("caught")

        async def inner(ctx, next):
            raise KeyError("x")

        ctx = Ctx()
        await compose([gen, inner])(ctx)

        assert ctx.calls == ["caught"]

    @pytest.mark.asyncio
    async def test_generator_bad_yield(self):
        """Yielding an unsupported value raises TypeError."""

        def gen(ctx, next):
            yield 42

        with pytest.raises(TypeError, match="may only yield"):
            await compose([gen])(Ctx())

    @pytest.mark.asyncio
    async def test_middleware_class(self):
        """Middleware subclasses are plain callables."""

        class Mark(Middleware):
            async def __call__(self, ctx, next):
                ctx.calls.append(self.name)
                await next()

        ctx = Ctx()
        await compose([Mark()])(ctx)

        assert ctx.calls == ["Mark"]
        assert repr(Mark()) == "<Mark>"

    def test_middleware_is_abstract(self):
        with pytest.raises(TypeError):
            Middleware()
