"""
Byte streams that can be assigned to ``ctx.body``.

Anything that produces bytes over time counts as a stream:

    - async iterables of bytes / str
    - ``asyncio.StreamReader``
    - binary file objects (read in a worker thread)
    - plain iterators / generators of bytes
    - ``FileStream``, which opens its file lazily

``iter_chunks`` reads any of them the same way and ``close_stream`` releases
them. The transport always calls ``close_stream`` when piping ends, whether
or not it succeeded.
"""

import asyncio
import inspect
import io
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import AsyncIterator, Optional, Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def is_stream(value) -> bool:
    """True for values the response layer treats as a byte stream."""
    if value is None or isinstance(value, (str, bytes, bytearray, memoryview, dict, list, tuple)):
        return False
    if isinstance(value, (io.IOBase, asyncio.StreamReader, FileStream)):
        return True
    if hasattr(value, "__aiter__"):
        return True
    if isinstance(value, Iterator):
        return True
    return callable(getattr(value, "read", None))


def _to_bytes(chunk) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


async def iter_chunks(stream, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield the stream's content as bytes chunks."""
    if isinstance(stream, asyncio.StreamReader):
        while True:
            chunk = await stream.read(chunk_size)
            if not chunk:
                return
            yield chunk

    elif hasattr(stream, "__aiter__"):
        async for chunk in stream:
            yield _to_bytes(chunk)

    elif callable(getattr(stream, "read", None)):
        loop = asyncio.get_running_loop()
        while True:
            if inspect.iscoroutinefunction(stream.read):
                chunk = await stream.read(chunk_size)
            else:
                chunk = await loop.run_in_executor(None, stream.read, chunk_size)
            if not chunk:
                return
            yield _to_bytes(chunk)

    else:
        for chunk in stream:
            yield _to_bytes(chunk)


async def close_stream(stream) -> None:
    """Release a stream; close errors are logged, not raised."""
    closer = getattr(stream, "aclose", None) or getattr(stream, "close", None)
    if closer is None:
        return
    try:
        result = closer()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.debug(f"Error closing stream {stream!r}: {e}")


# strong references for closes scheduled by release_stream
_closing = set()


def release_stream(stream) -> None:
    """
    Close a stream from synchronous code.

    An async closer (``aclose`` of an async generator or ``FileStream``) is
    scheduled on the running loop; outside a loop it is discarded.
    """
    closer = getattr(stream, "aclose", None) or getattr(stream, "close", None)
    if closer is None:
        return
    try:
        result = closer()
    except Exception as e:
        logger.debug(f"Error closing stream {stream!r}: {e}")
        return
    if not inspect.isawaitable(result):
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        if inspect.iscoroutine(result):
            result.close()
        return
    task = loop.create_task(_await_close(stream, result))
    _closing.add(task)
    task.add_done_callback(_closing.discard)


async def _await_close(stream, pending) -> None:
    try:
        await pending
    except Exception as e:
        logger.debug(f"Error closing stream {stream!r}: {e}")


class FileStream:
    """
    Async chunked reader for a file on disk.

    The file is opened on the first read, so a missing or unreadable file
    surfaces as ``FileNotFoundError`` / ``PermissionError`` while the body is
    being sent, before any header goes out.
    """

    def __init__(self, path: Union[str, Path], chunk_size: int = CHUNK_SIZE):
        self.path = Path(path)
        self.chunk_size = chunk_size
        self._file: Optional[io.BufferedReader] = None
        self.closed = False

    def __repr__(self) -> str:
        return f"FileStream({str(self.path)!r})"

    def __aiter__(self) -> "FileStream":
        return self

    async def __anext__(self) -> bytes:
        if self.closed:
            raise StopAsyncIteration

        loop = asyncio.get_running_loop()
        if self._file is None:
            self._file = await loop.run_in_executor(None, open, self.path, "rb")

        chunk = await loop.run_in_executor(None, self._file.read, self.chunk_size)
        if not chunk:
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        self.closed = True
        if self._file is not None:
            self._file.close()
            self._file = None
