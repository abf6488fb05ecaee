"""
=============================================================================
ERRORS
=============================================================================

Status-bearing exceptions for middleware, plus the composer's misuse error.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HOW AN ERROR BECOMES A RESPONSE                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ctx.throw("Nope", 403)                                            │
    │        │                                                             │
    │        ▼                                                             │
    │   HTTPError(status=403, expose=True)   raised through the onion     │
    │        │                                                             │
    │        ▼                                                             │
    │   ctx.onerror(error)                                                 │
    │        ├── emits app "error" event (logged)                          │
    │        ├── headers already sent? → mark error.header_sent, stop     │
    │        └── writes "403 Nope" as text/plain                           │
    │                                                                      │
    │   expose=True  → the message goes to the client                     │
    │   expose=False → only the reason phrase does (default for 5xx)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from collections.abc import Mapping
from typing import Any, Optional

from .http.status_codes import status_phrase


class HTTPError(Exception):
    """
    An error that knows which HTTP status it should produce.

    Args:
        message: Text for logs, and for the client when exposed. Defaults
                 to the reason phrase.
        status: HTTP status. Left as None it resolves to 500 in
                ``Context.onerror``.
        expose: Whether the message may be sent to the client. Defaults to
                True for 4xx and False otherwise.
        **props: Extra attributes copied onto the error.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        expose: Optional[bool] = None,
        **props: Any,
    ):
        if message is None:
            message = status_phrase(status) if status is not None else None
            message = message or "Internal Server Error"
        super().__init__(message)
        self.message = message
        self.status = status
        if expose is None:
            expose = status is not None and status < 500
        self.expose = expose
        self.header_sent = False
        for name, value in props.items():
            setattr(self, name, value)

    @property
    def status_code(self) -> Optional[int]:
        return self.status

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status={self.status!r})"


def create_error(*args: Any, **props: Any) -> BaseException:
    """
    Build an ``HTTPError`` from loosely ordered arguments.

    Accepts the status and message in either order, so
    ``create_error(404)``, ``create_error("Gone", 410)`` and
    ``create_error(403, "No")`` all work. A mapping argument adds
    properties. An existing exception is decorated in place and returned:
    it gains the status (500 when it has none) and the properties, and
    keeps its own message.
    """
    error: Optional[BaseException] = None
    for arg in args:
        if isinstance(arg, BaseException):
            error = arg
        elif isinstance(arg, int) and not isinstance(arg, bool):
            props["status"] = arg
        elif isinstance(arg, str):
            props["message"] = arg
        elif isinstance(arg, Mapping):
            props.update(arg)
        elif arg is not None:
            raise TypeError(f"create_error() got an unexpected argument: {arg!r}")

    message = props.pop("message", None)
    status = props.pop("status", None)
    expose = props.pop("expose", None)

    if error is None:
        return HTTPError(message, status=status, expose=expose, **props)

    current = getattr(error, "status", None)
    if status is None and isinstance(current, int) and not isinstance(current, bool):
        status = current
    error.status = status if status is not None else 500
    if expose is not None:
        error.expose = expose
    elif not hasattr(error, "expose"):
        error.expose = False
    for name, value in props.items():
        setattr(error, name, value)
    return error


class NextCalledMultipleTimes(RuntimeError):
    """A middleware invoked its ``next`` function more than once."""

    def __init__(self, message: str = "next() called multiple times"):
        super().__init__(message)
