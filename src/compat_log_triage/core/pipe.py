"""Bounded single-producer/single-consumer byte channel.

The source handler writes decompressed chunks while the extractor reads them,
so neither side ever holds more than ``capacity`` chunks in memory.
"""

from __future__ import annotations

import asyncio

from .errors import StreamError

_EOF = object()


class BytePipe:
    """Async byte channel with backpressure in both directions."""

    def __init__(self, capacity: int = 16) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._abandoned = False
        self._error: BaseException | None = None
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, chunk: bytes) -> None:
        """Append a chunk, suspending while the buffer is full."""
        if self._abandoned:
            raise StreamError("reader abandoned the pipe")
        if self._closed:
            raise StreamError("write to a closed pipe")
        if not chunk:
            return
        await self._queue.put(bytes(chunk))
        self.bytes_written += len(chunk)

    def write_threadsafe(self, chunk: bytes, loop: asyncio.AbstractEventLoop) -> None:
        """Blocking write for producers running in a worker thread."""
        asyncio.run_coroutine_threadsafe(self.write(chunk), loop).result()

    async def close(self, error: BaseException | None = None) -> None:
        """End the stream; a non-None error is surfaced to the reader."""
        if self._closed:
            return
        self._closed = True
        self._error = error
        if self._abandoned:
            return
        await self._queue.put(_EOF)

    def close_threadsafe(
        self, loop: asyncio.AbstractEventLoop, error: BaseException | None = None
    ) -> None:
        asyncio.run_coroutine_threadsafe(self.close(error), loop).result()

    def abandon(self) -> None:
        """Reader side gives up: drop buffered data and fail further writes."""
        self._abandoned = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> BytePipe:
        return self

    async def __anext__(self) -> bytes:
        if self._abandoned:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            if self._error is not None:
                raise StreamError(str(self._error) or type(self._error).__name__) from self._error
            raise StopAsyncIteration
        return item  # type: ignore[return-value]
