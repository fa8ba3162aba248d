"""
Filesystem storage backend implementation.

Stores each bucket as a directory below the configured root:
- {directory}/{bucket}/ - one directory per bucket
- {directory}/{bucket}/{key} - files, with '/' in keys mapped to subdirectories
"""

import asyncio
import re
import shutil
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, List, Optional
from uuid import uuid4

import aiofiles
import aiofiles.os

from storage_abstraction.storage.adapter import (
    FileEntry,
    StorageAdapter,
    normalize_key,
    validate_byte_range,
)
from storage_abstraction.storage.errors import BackendError, NotFoundError
from storage_abstraction.storage.stream import DEFAULT_CHUNK_SIZE, ByteStream

# Files still being written: ".{name}.{uuid hex}.partial" next to the target
_PARTIAL_SUFFIX = ".partial"
_PARTIAL_NAME = re.compile(r"^\..+\.[0-9a-f]{32}\.partial$")


class FilesystemStorage(StorageAdapter):
    """
    Filesystem-based storage implementation.

    Writes go to a temporary file next to the target which is renamed into
    place once complete, so an interrupted write never shows up as a file.
    """

    backend_name = "local"

    def __init__(
        self,
        directory: str = "./storage",
        bucket_name: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize filesystem storage.

        Args:
            directory: Root directory holding all buckets
            bucket_name: Bucket to select initially
            chunk_size: Chunk size used for copies and read streams
        """
        super().__init__(bucket_name)
        self.base_path = Path(directory).resolve()
        self.chunk_size = chunk_size
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _bucket_path(self, bucket: str) -> Path:
        return self.base_path / bucket

    def _file_path(self, bucket: str, name: str) -> Path:
        """
        Convert a file key to a filesystem path inside its bucket.

        Raises:
            BackendError: If the key points outside the bucket
        """
        bucket_path = self._bucket_path(bucket)
        path = (bucket_path / normalize_key(name)).resolve()
        try:
            path.relative_to(bucket_path)
        except ValueError:
            raise BackendError(f"Invalid file name: {name!r}")
        return path

    async def _require_bucket(self, bucket: str) -> Path:
        bucket_path = self._bucket_path(bucket)
        if not await aiofiles.os.path.isdir(bucket_path):
            raise NotFoundError(f"Bucket not found: {bucket}")
        return bucket_path

    async def _require_file(self, bucket: str, name: str) -> Path:
        await self._require_bucket(bucket)
        path = self._file_path(bucket, name)
        if not await aiofiles.os.path.isfile(path):
            raise NotFoundError(f"File not found: {name}")
        return path

    async def _create_bucket(self, bucket: str) -> None:
        try:
            await aiofiles.os.makedirs(self._bucket_path(bucket), exist_ok=True)
        except OSError as e:
            raise BackendError.wrap(e, "Failed to create bucket") from e

    async def _clear_bucket(self, bucket: str) -> None:
        bucket_path = await self._require_bucket(bucket)
        try:
            for entry in await aiofiles.os.listdir(bucket_path):
                path = bucket_path / entry
                if await aiofiles.os.path.isdir(path):
                    await asyncio.to_thread(shutil.rmtree, path)
                else:
                    await aiofiles.os.remove(path)
        except OSError as e:
            raise BackendError.wrap(e, "Failed to clear bucket") from e

    async def _delete_bucket(self, bucket: str) -> None:
        bucket_path = await self._require_bucket(bucket)
        try:
            await asyncio.to_thread(shutil.rmtree, bucket_path)
        except OSError as e:
            raise BackendError.wrap(e, "Failed to delete bucket") from e

    async def list_buckets(self) -> List[str]:
        """List bucket directories."""
        try:
            if not await aiofiles.os.path.isdir(self.base_path):
                return []
            buckets = []
            for entry in await aiofiles.os.listdir(self.base_path):
                if await aiofiles.os.path.isdir(self.base_path / entry):
                    buckets.append(entry)
            return sorted(buckets)
        except OSError as e:
            raise BackendError.wrap(e, "Failed to list buckets") from e

    async def _write_atomically(self, target: Path, chunks: AsyncIterable[bytes]) -> None:
        """
        Write ``chunks`` to ``target`` via a temporary file in the same directory.

        Args:
            target: Final file path
            chunks: Content to write
        """
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        partial = target.with_name(f".{target.name}.{uuid4().hex}{_PARTIAL_SUFFIX}")
        try:
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
            await aiofiles.os.replace(partial, target)
        except BaseException:
            if await aiofiles.os.path.exists(partial):
                await aiofiles.os.remove(partial)
            raise

    async def add_file_from_path(
        self, orig_path: str, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """Copy a local file into a bucket."""
        bucket = await self._resolve_bucket(bucket)
        await self._require_bucket(bucket)
        target = self._file_path(bucket, target_path)
        if not await aiofiles.os.path.isfile(orig_path):
            raise NotFoundError(f"Source file not found: {orig_path}")
        try:
            async with aiofiles.open(orig_path, "rb") as src:
                await self._write_atomically(target, self._read_chunks(src))
        except OSError as e:
            raise BackendError.wrap(e, "Failed to store file") from e

    async def _read_chunks(self, src) -> AsyncIterator[bytes]:
        while True:
            chunk = await src.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    async def add_file_from_buffer(
        self, data: bytes, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """Store an in-memory buffer in a bucket."""
        bucket = await self._resolve_bucket(bucket)
        await self._require_bucket(bucket)
        target = self._file_path(bucket, target_path)
        try:
            await self._write_atomically(
                target, ByteStream.from_bytes(data, chunk_size=self.chunk_size))
        except OSError as e:
            raise BackendError.wrap(e, "Failed to store file") from e

    async def _open_stream(
        self, path: Path, start: int = 0, length: Optional[int] = None
    ) -> ByteStream:
        try:
            f = await aiofiles.open(path, "rb")
        except OSError as e:
            raise BackendError.wrap(e, "Failed to open file") from e
        try:
            if start:
                await f.seek(start)
        except OSError as e:
            await f.close()
            raise BackendError.wrap(e, "Failed to open file") from e
        return ByteStream(f.read, f.close, length=length, chunk_size=self.chunk_size)

    async def get_file_as_readable(
        self, name: str, bucket: Optional[str] = None
    ) -> ByteStream:
        """Open a stored file as a byte stream."""
        bucket = await self._resolve_bucket(bucket)
        path = await self._require_file(bucket, name)
        return await self._open_stream(path)

    async def get_file_byte_range_as_readable(
        self,
        name: str,
        start: int,
        length: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> ByteStream:
        """Open part of a stored file as a byte stream."""
        bucket = await self._resolve_bucket(bucket)
        path = await self._require_file(bucket, name)
        size = (await aiofiles.os.stat(path)).st_size
        validate_byte_range(start, length, size)
        return await self._open_stream(path, start, length)

    async def remove_file(self, name: str, bucket: Optional[str] = None) -> None:
        """Delete a file and prune empty parent directories in its bucket."""
        bucket = await self._resolve_bucket(bucket)
        bucket_path = self._bucket_path(bucket)
        path = self._file_path(bucket, name)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise BackendError.wrap(e, "Failed to delete file") from e

        parent = path.parent
        while parent != bucket_path:
            try:
                if await aiofiles.os.listdir(parent):
                    break
                await aiofiles.os.rmdir(parent)
                parent = parent.parent
            except OSError:
                # Directory not empty or already removed
                break

    async def list_files(self, bucket: Optional[str] = None) -> List[FileEntry]:
        """List all files in a bucket as (path, size) tuples."""
        bucket = await self._resolve_bucket(bucket)
        bucket_path = await self._require_bucket(bucket)
        try:
            return await asyncio.to_thread(_walk_files, bucket_path)
        except OSError as e:
            raise BackendError.wrap(e, "Failed to list files") from e

    async def size_of(self, name: str, bucket: Optional[str] = None) -> int:
        """Get file size in bytes."""
        bucket = await self._resolve_bucket(bucket)
        path = await self._require_file(bucket, name)
        try:
            return (await aiofiles.os.stat(path)).st_size
        except OSError as e:
            raise BackendError.wrap(e, "Failed to get file size") from e


def _walk_files(bucket_path: Path) -> List[FileEntry]:
    files = []
    for path in bucket_path.rglob("*"):
        if path.is_file() and not _PARTIAL_NAME.match(path.name):
            files.append(
                (path.relative_to(bucket_path).as_posix(), path.stat().st_size))
    return sorted(files)
