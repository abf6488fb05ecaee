"""
Unit tests for the access log middleware.
"""

import json
import logging

import pytest

from hserver import Application
from hserver.middleware import AccessLogger, RequestLog


async def hello(ctx, next):
    ctx.body = "hello"


def access_records(caplog):
    return [record for record in caplog.records if record.name == "hserver.access"]


class TestAccessLogger:
    """Tests for AccessLogger."""

    @pytest.mark.asyncio
    async def test_text_line(self, app: Application, send_request, caplog):
        app.use(AccessLogger()).use(hello)

        with caplog.at_level(logging.INFO, logger="hserver.access"):
            await send_request(app, url="/hello")

        records = access_records(caplog)
        assert len(records) == 1
        message = records[0].getMessage()
        assert message.startswith("127.0.0.1 - - [")
        assert '"GET /hello" 200 5 ' in message
        assert message.endswith("ms")

    @pytest.mark.asyncio
    async def test_json_line(self, app: Application, send_request, caplog):
        app.use(AccessLogger(log_format="json")).use(hello)

        with caplog.at_level(logging.INFO, logger="hserver.access"):
            await send_request(app, url="/hello?x=1", headers={"User-Agent": "pytest"})

        entry = json.loads(access_records(caplog)[0].getMessage())
        assert entry["method"] == "GET"
        assert entry["url"] == "/hello?x=1"
        assert entry["status"] == 200
        assert entry["length"] == 5
        assert entry["user_agent"] == "pytest"
        assert entry["client_ip"] == "127.0.0.1"
        assert entry["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_request_id_header(self, app: Application, send_request):
        seen = {}

        async def capture(ctx, next):
            seen["id"] = ctx.state["request_id"]
            await next()

        app.use(AccessLogger()).use(capture).use(hello)
        _, headers, _, _ = await send_request(app)

        assert headers["x-request-id"] == seen["id"]
        assert len(seen["id"]) == 8

    @pytest.mark.asyncio
    async def test_incoming_request_id_reused(self, app: Application, send_request):
        app.use(AccessLogger()).use(hello)
        _, headers, _, _ = await send_request(app, headers={"X-Request-ID": "abc123"})

        assert headers["x-request-id"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_header_optional(self, app: Application, send_request):
        app.use(AccessLogger(include_request_id=False)).use(hello)
        _, headers, _, _ = await send_request(app)

        assert "x-request-id" not in headers

    @pytest.mark.asyncio
    async def test_skip_paths(self, app: Application, send_request, caplog):
        app.use(AccessLogger(skip_paths=["/health"])).use(hello)

        with caplog.at_level(logging.INFO, logger="hserver.access"):
            await send_request(app, url="/health")

        assert access_records(caplog) == []

    @pytest.mark.asyncio
    async def test_failure_logged_and_reraised(self, app: Application, send_request, caplog):
        async def boom(ctx, next):
            raise RuntimeError("boom")

        app.use(AccessLogger()).use(boom)

        with caplog.at_level(logging.INFO, logger="hserver.access"):
            status, _, _, _ = await send_request(app, url="/x")

        records = access_records(caplog)
        assert status == 500
        assert records[0].levelno == logging.ERROR
        assert "Request failed: GET /x - RuntimeError: boom" in records[0].getMessage()

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            AccessLogger(log_format="xml")


class TestRequestLog:
    """Tests for RequestLog formatting."""

    def test_to_text_without_length(self):
        entry = RequestLog(
            request_id="abc",
            method="GET",
            url="/",
            client_ip="",
            user_agent="-",
            status=204,
            length=None,
            duration_ms=1.234,
            timestamp="01/Jan/2026:00:00:00 +0000",
        )

        assert entry.to_text() == '- - - [01/Jan/2026:00:00:00 +0000] "GET /" 204 - 1.23ms'
        assert entry.to_dict()["duration_ms"] == 1.23
