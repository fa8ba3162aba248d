"""
Unit tests for filesystem storage backend.
"""

from uuid import uuid4

import pytest

from storage_abstraction.storage.errors import (
    BackendError,
    NoBucketSelectedError,
    NotFoundError,
)
from storage_abstraction.storage.filesystem import FilesystemStorage


@pytest.fixture
def temp_storage(tmp_path):
    """Create a temporary storage instance."""
    return FilesystemStorage(str(tmp_path / "store"), chunk_size=4)


class TestFilesystemStorageInit:
    """Test storage initialization."""

    def test_init_creates_root_directory(self, tmp_path):
        """Init creates the root directory."""
        storage = FilesystemStorage(str(tmp_path / "new" / "root"))

        assert storage.base_path.is_dir()
        assert storage.get_selected_bucket() is None

    @pytest.mark.asyncio
    async def test_configured_bucket_is_created_lazily(self, tmp_path):
        """A configured bucket is selected at once but created on first use."""
        storage = FilesystemStorage(str(tmp_path), bucket_name="My Bucket")

        assert storage.get_selected_bucket() == "my-bucket"
        assert not (tmp_path / "my-bucket").exists()

        await storage.add_file_from_buffer(b"data", "file.txt")

        assert (tmp_path / "my-bucket" / "file.txt").read_bytes() == b"data"


class TestBuckets:
    """Test bucket operations."""

    @pytest.mark.asyncio
    async def test_create_bucket_is_idempotent(self, temp_storage):
        await temp_storage.create_bucket("Photos 2024")
        await temp_storage.create_bucket("Photos 2024")

        assert await temp_storage.list_buckets() == ["photos-2024"]
        # Creating does not select
        assert temp_storage.get_selected_bucket() is None

    @pytest.mark.asyncio
    async def test_create_bucket_without_name_or_selection(self, temp_storage):
        with pytest.raises(NoBucketSelectedError):
            await temp_storage.create_bucket()

    @pytest.mark.asyncio
    async def test_select_bucket_creates_directory(self, temp_storage):
        await temp_storage.select_bucket("docs")

        assert temp_storage.get_selected_bucket() == "docs"
        assert (temp_storage.base_path / "docs").is_dir()

    @pytest.mark.asyncio
    async def test_select_none_clears_selection(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.select_bucket(None)

        assert temp_storage.get_selected_bucket() is None

    @pytest.mark.asyncio
    async def test_list_buckets_empty(self, temp_storage):
        assert await temp_storage.list_buckets() == []

    @pytest.mark.asyncio
    async def test_clear_bucket_removes_all_files(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"1", "a.txt")
        await temp_storage.add_file_from_buffer(b"2", "sub/dir/b.txt")

        await temp_storage.clear_bucket()

        assert await temp_storage.list_files() == []
        assert (temp_storage.base_path / "docs").is_dir()

    @pytest.mark.asyncio
    async def test_clear_bucket_by_name(self, temp_storage):
        await temp_storage.create_bucket("other")
        await temp_storage.add_file_from_buffer(b"1", "a.txt", bucket="other")

        await temp_storage.clear_bucket("other")

        assert await temp_storage.list_files(bucket="other") == []

    @pytest.mark.asyncio
    async def test_clear_bucket_without_selection(self, temp_storage):
        with pytest.raises(NoBucketSelectedError):
            await temp_storage.clear_bucket()

    @pytest.mark.asyncio
    async def test_delete_selected_bucket_clears_selection(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"1", "a.txt")

        await temp_storage.delete_bucket()

        assert temp_storage.get_selected_bucket() is None
        assert await temp_storage.list_buckets() == []

    @pytest.mark.asyncio
    async def test_delete_other_bucket_keeps_selection(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.create_bucket("old")

        await temp_storage.delete_bucket("old")

        assert temp_storage.get_selected_bucket() == "docs"
        assert await temp_storage.list_buckets() == ["docs"]

    @pytest.mark.asyncio
    async def test_delete_missing_bucket(self, temp_storage):
        with pytest.raises(NotFoundError):
            await temp_storage.delete_bucket("missing")

    @pytest.mark.asyncio
    async def test_delete_bucket_without_selection(self, temp_storage):
        with pytest.raises(NoBucketSelectedError):
            await temp_storage.delete_bucket()


class TestFiles:
    """Test file operations."""

    @pytest.mark.asyncio
    async def test_buffer_round_trip(self, temp_storage):
        data = bytes(range(256)) * 3
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(data, "bin/data.bin")

        stream = await temp_storage.get_file_as_readable("bin/data.bin")

        assert await stream.read() == data
        assert stream.closed

    @pytest.mark.asyncio
    async def test_add_file_from_path(self, temp_storage, source_file):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_path(str(source_file), "nested/report.txt")

        stored = temp_storage.base_path / "docs" / "nested" / "report.txt"
        assert stored.read_bytes() == source_file.read_bytes()

    @pytest.mark.asyncio
    async def test_add_file_from_missing_path(self, temp_storage, tmp_path):
        await temp_storage.select_bucket("docs")

        with pytest.raises(NotFoundError):
            await temp_storage.add_file_from_path(str(tmp_path / "nope"), "x.txt")

        assert await temp_storage.list_files() == []

    @pytest.mark.asyncio
    async def test_add_file_overwrites_existing(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"First content", "test.txt")
        await temp_storage.add_file_from_buffer(b"Second", "test.txt")

        stream = await temp_storage.get_file_as_readable("test.txt")

        assert await stream.read() == b"Second"
        assert await temp_storage.list_files() == [("test.txt", 6)]

    @pytest.mark.asyncio
    async def test_add_file_without_selection(self, temp_storage):
        with pytest.raises(NoBucketSelectedError):
            await temp_storage.add_file_from_buffer(b"x", "x.txt")

    @pytest.mark.asyncio
    async def test_add_file_to_missing_explicit_bucket(self, temp_storage):
        with pytest.raises(NotFoundError):
            await temp_storage.add_file_from_buffer(b"x", "x.txt", bucket="nope")

    @pytest.mark.asyncio
    async def test_key_escaping_bucket_is_rejected(self, temp_storage):
        await temp_storage.select_bucket("docs")

        with pytest.raises(BackendError):
            await temp_storage.add_file_from_buffer(b"x", "../escape.txt")

    @pytest.mark.asyncio
    async def test_leading_slash_is_ignored(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"abc", "/top.txt")

        assert await temp_storage.size_of("top.txt") == 3

    @pytest.mark.asyncio
    async def test_get_missing_file(self, temp_storage):
        await temp_storage.select_bucket("docs")

        with pytest.raises(NotFoundError):
            await temp_storage.get_file_as_readable("missing.txt")

    @pytest.mark.asyncio
    async def test_byte_range_with_length(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"0123456789", "digits.txt")

        stream = await temp_storage.get_file_byte_range_as_readable("digits.txt", 2, 5)

        assert await stream.read() == b"23456"

    @pytest.mark.asyncio
    async def test_byte_range_to_end(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"0123456789", "digits.txt")

        stream = await temp_storage.get_file_byte_range_as_readable("digits.txt", 7)

        assert await stream.read() == b"789"

    @pytest.mark.asyncio
    async def test_byte_range_length_past_end(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"0123456789", "digits.txt")

        stream = await temp_storage.get_file_byte_range_as_readable("digits.txt", 8, 100)

        assert await stream.read() == b"89"

    @pytest.mark.asyncio
    async def test_byte_range_start_at_size_is_empty(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"0123456789", "digits.txt")

        stream = await temp_storage.get_file_byte_range_as_readable("digits.txt", 10)

        assert await stream.read() == b""

    @pytest.mark.asyncio
    async def test_byte_range_start_past_size(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"0123456789", "digits.txt")

        with pytest.raises(BackendError):
            await temp_storage.get_file_byte_range_as_readable("digits.txt", 11)

    @pytest.mark.asyncio
    async def test_stream_closed_early(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"0123456789", "digits.txt")

        async with await temp_storage.get_file_as_readable("digits.txt") as stream:
            first = await stream.__anext__()

        assert first == b"0123"
        assert stream.closed

    @pytest.mark.asyncio
    async def test_remove_file_prunes_empty_directories(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"x", "a/b/c.txt")

        await temp_storage.remove_file("a/b/c.txt")

        bucket_path = temp_storage.base_path / "docs"
        assert not (bucket_path / "a").exists()
        assert bucket_path.is_dir()

    @pytest.mark.asyncio
    async def test_remove_missing_file_is_noop(self, temp_storage):
        await temp_storage.select_bucket("docs")

        await temp_storage.remove_file("never-stored.txt")

        assert await temp_storage.list_files() == []

    @pytest.mark.asyncio
    async def test_list_files_with_sizes(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"12345", "b.txt")
        await temp_storage.add_file_from_buffer(b"12", "sub/a.txt")

        assert await temp_storage.list_files() == [("b.txt", 5), ("sub/a.txt", 2)]

    @pytest.mark.asyncio
    async def test_list_files_without_selection(self, temp_storage):
        with pytest.raises(NoBucketSelectedError):
            await temp_storage.list_files()

    @pytest.mark.asyncio
    async def test_list_files_skips_partial_writes(self, temp_storage):
        await temp_storage.select_bucket("docs")
        partial_name = f".big.bin.{uuid4().hex}.partial"
        (temp_storage.base_path / "docs" / partial_name).write_bytes(b"half")

        assert await temp_storage.list_files() == []

    @pytest.mark.asyncio
    async def test_list_files_keeps_user_partial_files(self, temp_storage):
        await temp_storage.select_bucket("docs")
        await temp_storage.add_file_from_buffer(b"abc", "backup.partial")
        await temp_storage.add_file_from_buffer(b"xy", ".hidden.partial")

        assert await temp_storage.list_files() == [
            (".hidden.partial", 2),
            ("backup.partial", 3),
        ]

    @pytest.mark.asyncio
    async def test_size_of_missing_file(self, temp_storage):
        await temp_storage.select_bucket("docs")

        with pytest.raises(NotFoundError):
            await temp_storage.size_of("missing.txt")
