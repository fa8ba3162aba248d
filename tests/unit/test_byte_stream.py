"""
Unit tests for lazily produced byte streams.
"""

import pytest

from storage_abstraction.storage.stream import ByteStream


class FakeReader:
    """Reader serving a fixed payload and recording close calls."""

    def __init__(self, data: bytes, fail_after: int = -1):
        self.data = data
        self.position = 0
        self.reads = 0
        self.closed = 0
        self.fail_after = fail_after

    async def read(self, size: int) -> bytes:
        if self.reads == self.fail_after:
            raise ConnectionError("connection reset")
        self.reads += 1
        chunk = self.data[self.position:self.position + size]
        self.position += len(chunk)
        return chunk

    async def close(self) -> None:
        self.closed += 1


class TestByteStream:
    """Tests for ByteStream."""

    @pytest.mark.asyncio
    async def test_yields_chunks_of_requested_size(self):
        reader = FakeReader(b"abcdefghij")
        stream = ByteStream(reader.read, reader.close, chunk_size=4)

        chunks = [chunk async for chunk in stream]

        assert chunks == [b"abcd", b"efgh", b"ij"]
        assert reader.closed == 1

    @pytest.mark.asyncio
    async def test_length_bounds_content(self):
        reader = FakeReader(b"abcdefghij")
        stream = ByteStream(reader.read, reader.close, length=5, chunk_size=4)

        assert await stream.read() == b"abcde"
        assert reader.closed == 1
        # Nothing beyond the bound is requested
        assert reader.position == 5

    @pytest.mark.asyncio
    async def test_zero_length_reads_nothing(self):
        reader = FakeReader(b"abc")
        stream = ByteStream(reader.read, reader.close, length=0)

        assert await stream.read() == b""
        assert reader.reads == 0
        assert reader.closed == 1

    @pytest.mark.asyncio
    async def test_error_releases_reader(self):
        reader = FakeReader(b"abcdefghij", fail_after=1)
        stream = ByteStream(reader.read, reader.close, chunk_size=4)

        with pytest.raises(ConnectionError):
            await stream.read()

        assert stream.closed
        assert reader.closed == 1

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self):
        reader = FakeReader(b"abc")
        stream = ByteStream(reader.read, reader.close)

        await stream.aclose()
        await stream.aclose()

        assert reader.closed == 1
        assert [chunk async for chunk in stream] == []

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        reader = FakeReader(b"abcdef")

        async with ByteStream(reader.read, reader.close, chunk_size=2) as stream:
            assert await stream.__anext__() == b"ab"

        assert reader.closed == 1

    @pytest.mark.asyncio
    async def test_from_bytes(self):
        stream = ByteStream.from_bytes(b"payload", chunk_size=3)

        assert [chunk async for chunk in stream] == [b"pay", b"loa", b"d"]

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await ByteStream.empty().read() == b""

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            ByteStream.from_bytes(b"x", chunk_size=0)
