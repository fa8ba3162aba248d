"""
Lazily produced byte streams returned by file reads.

A ByteStream pulls chunks from a backend-specific reader on demand and
releases the reader as soon as the content is exhausted, an error occurs,
or the caller closes the stream.
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

ReadChunk = Callable[[int], Awaitable[bytes]]
CloseReader = Callable[[], Awaitable[None]]


async def _noop_close() -> None:
    return None


class ByteStream:
    """
    Async iterator over the content of a stored file.

    Usage:
        async with await storage.get_file_as_readable("report.pdf") as stream:
            async for chunk in stream:
                ...

    The caller owns the stream and must either consume it fully or call
    ``aclose()``.
    """

    def __init__(
        self,
        read_chunk: ReadChunk,
        close: Optional[CloseReader] = None,
        length: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize the stream.

        Args:
            read_chunk: Coroutine function returning up to ``n`` bytes, or
                ``b""`` at end of content
            close: Coroutine function releasing the underlying reader
            length: Maximum number of bytes to yield (None = until exhausted)
            chunk_size: Preferred size of each yielded chunk
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._read_chunk = read_chunk
        self._close = close or _noop_close
        self._remaining = length
        self._chunk_size = chunk_size
        self._closed = False

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> "ByteStream":
        """Build a stream over an in-memory buffer."""
        view = memoryview(data)
        position = 0

        async def read_chunk(size: int) -> bytes:
            nonlocal position
            chunk = bytes(view[position:position + size])
            position += len(chunk)
            return chunk

        return cls(read_chunk, chunk_size=chunk_size)

    @classmethod
    def empty(cls) -> "ByteStream":
        """Build a stream without content."""
        return cls.from_bytes(b"")

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration

        size = self._chunk_size
        if self._remaining is not None:
            if self._remaining <= 0:
                await self.aclose()
                raise StopAsyncIteration
            size = min(size, self._remaining)

        try:
            chunk = await self._read_chunk(size)
        except BaseException:
            await self.aclose()
            raise

        if not chunk:
            await self.aclose()
            raise StopAsyncIteration

        if self._remaining is not None:
            chunk = chunk[:self._remaining]
            self._remaining -= len(chunk)
        return chunk

    async def read(self) -> bytes:
        """Drain the stream and return the remaining content."""
        parts = []
        async for chunk in self:
            parts.append(chunk)
        return b"".join(parts)

    async def aclose(self) -> None:
        """Release the underlying reader. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._close()
        except Exception as e:
            logger.warning(f"Failed to release stream reader: {e}")

    async def __aenter__(self) -> "ByteStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
