"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Times every request and writes one access-log line when it completes.

    app.use(AccessLogger())                 # text, first in the chain
    app.use(AccessLogger(log_format="json"))

Text format:

    127.0.0.1 - - [01/Jan/2026:12:00:00 +0000] "GET /index.html" 200 612 1.84ms

Registered first, it sees every request, including those that later
middleware reject, and its timing covers the whole pipeline. Failures are
logged and re-raised so the error handler still produces the response.

Lines go to the ``hserver.access`` logger.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from .base import Middleware, Next

logger = logging.getLogger("hserver.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    request_id: str
    method: str
    url: str
    client_ip: str
    user_agent: str
    status: int
    length: Optional[int]
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        length = "-" if self.length is None else self.length
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.url}" {self.status} '
            f"{length} {self.duration_ms:.2f}ms"
        )


class AccessLogger(Middleware):
    """
    Request logging middleware.

    Args:
        log_format: "text" (combined-log style) or "json"
        include_request_id: Add an X-Request-ID response header (an
            incoming X-Request-ID is reused)
        log_level: Level for access lines
        skip_paths: Paths not to log, e.g. ["/health"]
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    async def __call__(self, ctx, next: Next) -> None:
        request_id = ctx.get("X-Request-ID") or str(uuid.uuid4())[:8]
        ctx.state["request_id"] = request_id
        if self.include_request_id:
            ctx.set("X-Request-ID", request_id)

        start = time.perf_counter()
        try:
            await next()
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                f"Request failed: {ctx.method} {ctx.url} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        if ctx.path in self.skip_paths:
            return

        entry = RequestLog(
            request_id=request_id,
            method=ctx.method,
            url=ctx.url,
            client_ip=ctx.ip,
            user_agent=ctx.get("User-Agent") or "-",
            status=ctx.status,
            length=ctx.length,
            duration_ms=(time.perf_counter() - start) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
