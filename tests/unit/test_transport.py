"""
Unit tests for the raw ServerResponse writer and the Connection reader.
"""

import asyncio

import pytest

from hserver.config import AppConfig
from hserver.core.connection import Connection, ConnectionState
from hserver.core.transport import ServerResponse
from hserver.http.parser import HTTPParseError


class TestServerResponse:
    """Tests for ServerResponse."""

    def test_end_writes_head_and_body(self, fake_writer, parse_response):
        res = ServerResponse(fake_writer)
        res.set_header("Content-Type", "text/plain")
        res.end(b"hello")

        status, headers, body = parse_response(fake_writer.buffer)
        assert status == 200
        assert headers["content-type"] == "text/plain"
        assert headers["content-length"] == "5"
        assert headers["connection"] == "keep-alive"
        assert headers["server"] == "hserver/1.0"
        assert body == b"hello"
        assert res.headers_sent is True
        assert res.finished is True
        assert res.writable is False

    def test_default_server_name_matches_config(self, fake_writer):
        assert ServerResponse(fake_writer).server_name == AppConfig().server_name

    def test_status_line_uses_message(self, fake_writer):
        res = ServerResponse(fake_writer)
        res.status_code = 200
        res.status_message = "Fine"
        res.end()

        assert bytes(fake_writer.buffer).startswith(b"HTTP/1.1 200 Fine\r\n")

    def test_end_twice_is_noop(self, fake_writer):
        res = ServerResponse(fake_writer)
        res.end(b"one")
        size = len(fake_writer.buffer)
        res.end(b"two")

        assert len(fake_writer.buffer) == size

    def test_head_has_no_payload(self, fake_writer, parse_response):
        res = ServerResponse(fake_writer, method="HEAD")
        res.set_header("Content-Length", "10")
        res.end(b"ignored")

        _, headers, body = parse_response(fake_writer.buffer)
        assert headers["content-length"] == "10"
        assert body == b""

    def test_empty_status_has_no_length(self, fake_writer, parse_response):
        res = ServerResponse(fake_writer)
        res.status_code = 304
        res.end(b"ignored")

        status, headers, body = parse_response(fake_writer.buffer)
        assert status == 304
        assert "content-length" not in headers
        assert body == b""

    def test_headers_frozen(self, fake_writer):
        res = ServerResponse(fake_writer)
        res.end()

        with pytest.raises(RuntimeError):
            res.set_header("X-Late", "1")
        with pytest.raises(RuntimeError):
            res.remove_header("Date")

    def test_list_header_lines(self, fake_writer):
        res = ServerResponse(fake_writer)
        res.set_header("Set-Cookie", ["a=1", "b=2"])
        res.end()

        output = bytes(fake_writer.buffer)
        assert b"Set-Cookie: a=1\r\n" in output
        assert b"Set-Cookie: b=2\r\n" in output

    def test_connection_close_header_disables_keep_alive(self, fake_writer):
        res = ServerResponse(fake_writer)
        res.set_header("Connection", "close")
        res.end()

        assert res.keep_alive is False

    def test_header_accessors(self, fake_writer):
        res = ServerResponse(fake_writer)
        res.set_header("X-A", "1")

        assert res.has_header("x-a")
        assert res.get_header("X-A") == "1"
        assert res.get_headers() == {"x-a": "1"}
        res.remove_header("X-A")
        assert res.get_header("X-A") is None

    def test_writable_tracks_peer(self, fake_writer):
        res = ServerResponse(fake_writer)
        assert res.writable is True

        fake_writer.closed = True
        assert res.writable is False

    @pytest.mark.asyncio
    async def test_pipe(self, fake_writer, parse_response):
        res = ServerResponse(fake_writer)
        res.set_header("Content-Length", "6")

        await res.pipe(iter([b"abc", b"", b"def"]))

        _, _, body = parse_response(fake_writer.buffer)
        assert body == b"abcdef"
        assert res.finished is True
        assert res.keep_alive is True

    @pytest.mark.asyncio
    async def test_pipe_error_without_listener(self, fake_writer):
        async def broken():
            raise OSError("bad disk")
            yield b""

        res = ServerResponse(fake_writer)

        with pytest.raises(OSError):
            await res.pipe(broken())
        assert res.headers_sent is False

    @pytest.mark.asyncio
    async def test_pipe_reports_to_listener(self, fake_writer):
        errors = []

        async def broken():
            yield b"x"
            raise OSError("bad disk")

        res = ServerResponse(fake_writer)
        await res.pipe(broken(), on_error=errors.append)

        assert len(errors) == 1
        assert res.keep_alive is False

    @pytest.mark.asyncio
    async def test_pipe_closes_file(self, fake_writer, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"0123456789")
        handle = open(path, "rb")
        res = ServerResponse(fake_writer)

        await res.pipe(handle, chunk_size=4)

        assert bytes(fake_writer.buffer).endswith(b"0123456789")
        assert handle.closed

    @pytest.mark.asyncio
    async def test_flush_detects_disconnect(self, fake_writer):
        res = ServerResponse(fake_writer)
        assert await res.flush() is True

        fake_writer.closed = True
        assert await res.flush() is False
        assert res.keep_alive is False


class TestConnection:
    """Tests for Connection.read_request."""

    def _connection(self, data: bytes, writer, eof: bool = True, **kwargs) -> Connection:
        reader = asyncio.StreamReader()
        reader.feed_data(data)
        if eof:
            reader.feed_eof()
        return Connection(reader=reader, writer=writer, address=("10.0.0.1", 4000), **kwargs)

    @pytest.mark.asyncio
    async def test_reads_head_and_body(self, fake_writer):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhelloGET"
        conn = self._connection(raw, fake_writer)

        data = await conn.read_request()

        assert data == b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
        assert conn.state is ConnectionState.PROCESSING
        assert conn.client_ip == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_eof_returns_none(self, fake_writer):
        conn = self._connection(b"", fake_writer)

        assert await conn.read_request() is None

    @pytest.mark.asyncio
    async def test_incomplete_body(self, fake_writer):
        conn = self._connection(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc", fake_writer)

        with pytest.raises(HTTPParseError, match="Incomplete body"):
            await conn.read_request()

    @pytest.mark.asyncio
    async def test_too_large(self, fake_writer):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 5000\r\n\r\n"
        conn = self._connection(raw, fake_writer, max_request_size=1024)

        with pytest.raises(HTTPParseError) as exc_info:
            await conn.read_request()

        assert exc_info.value.status_code == 413

    @pytest.mark.asyncio
    async def test_invalid_content_length(self, fake_writer):
        conn = self._connection(b"POST / HTTP/1.1\r\nContent-Length: x\r\n\r\n", fake_writer)

        with pytest.raises(HTTPParseError):
            await conn.read_request()

    @pytest.mark.asyncio
    async def test_transfer_encoding_not_implemented(self, fake_writer):
        conn = self._connection(
            b"POST / HTTP/1.1\r\nTransfer-Encoding: gzip, chunked\r\n\r\n0\r\n\r\n", fake_writer
        )

        with pytest.raises(HTTPParseError) as exc_info:
            await conn.read_request()

        assert exc_info.value.status_code == 501

    @pytest.mark.asyncio
    async def test_first_request_timeout(self, fake_writer):
        conn = self._connection(b"", fake_writer, eof=False, timeout=0.05)

        with pytest.raises(TimeoutError):
            await conn.read_request()

    @pytest.mark.asyncio
    async def test_keep_alive_timeout_is_quiet(self, fake_writer):
        conn = self._connection(b"", fake_writer, eof=False, keep_alive_timeout=0.05)
        conn.set_keep_alive()

        assert await conn.read_request() is None
        assert conn.requests_handled == 1

    @pytest.mark.asyncio
    async def test_close(self, fake_writer):
        async with self._connection(b"", fake_writer) as conn:
            pass

        assert conn.state is ConnectionState.CLOSED
        assert fake_writer.closed is True

    @pytest.mark.asyncio
    async def test_encrypted(self, fake_writer):
        conn = Connection(reader=asyncio.StreamReader(), writer=fake_writer)
        assert conn.encrypted is False

        fake_writer.extra["sslcontext"] = object()
        assert conn.encrypted is True
