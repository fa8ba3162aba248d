"""
Google Cloud Storage backend implementation.

Authenticates with a service-account key file. Blocking client calls are
run in a worker thread so they do not block the event loop.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Callable, List, Optional

import aiofiles.os
from google.api_core.exceptions import Conflict, GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from storage_abstraction.storage.adapter import (
    FileEntry,
    StorageAdapter,
    normalize_key,
    validate_byte_range,
)
from storage_abstraction.storage.errors import BackendError, NotFoundError
from storage_abstraction.storage.stream import DEFAULT_CHUNK_SIZE, ByteStream

logger = logging.getLogger(__name__)


class GoogleCloudStorage(StorageAdapter):
    """
    Google Cloud Storage implementation.

    Buckets map onto GCS buckets of the configured project and file names
    onto blob names.
    """

    backend_name = "gcs"

    def __init__(
        self,
        project_id: str,
        key_filename: str,
        bucket_name: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        client: Any = None,
    ):
        """
        Initialize Google Cloud storage.

        Args:
            project_id: Google Cloud project id
            key_filename: Path to a service-account JSON key file
            bucket_name: Bucket to select initially
            chunk_size: Chunk size of read streams
            client: Preconfigured ``google.cloud.storage.Client``
        """
        super().__init__(bucket_name)
        self.project_id = project_id
        self.chunk_size = chunk_size
        if client is None:
            client = storage.Client.from_service_account_json(
                key_filename, project=project_id)
        self.client = client

    async def _run(self, func: Callable, context: str, *args, **kwargs) -> Any:
        """
        Run a blocking call in a worker thread and translate its errors.

        Raises:
            NotFoundError: If the bucket or blob does not exist
            BackendError: For any other client failure
        """
        try:
            return await asyncio.to_thread(partial(func, *args, **kwargs))
        except NotFound as e:
            raise NotFoundError(f"{context}: {e.message}") from e
        except (GoogleAPIError, GoogleAuthError) as e:
            raise BackendError.wrap(e, context) from e

    def _blob(self, bucket: str, name: str):
        return self.client.bucket(bucket).blob(normalize_key(name))

    async def _create_bucket(self, bucket: str) -> None:
        existing = await self._run(self.client.lookup_bucket, "Bucket lookup failed", bucket)
        if existing is not None:
            return
        try:
            await self._run(self.client.create_bucket, "Failed to create bucket", bucket)
            logger.info(f"Created GCS bucket {bucket}")
        except BackendError as e:
            if isinstance(e.original, Conflict):
                return
            raise

    async def _list_blobs(self, bucket: str) -> List[Any]:
        def collect() -> List[Any]:
            return list(self.client.bucket(bucket).list_blobs())

        return await self._run(collect, f"Bucket not found: {bucket}")

    async def _clear_bucket(self, bucket: str) -> None:
        for blob in await self._list_blobs(bucket):
            try:
                await self._run(blob.delete, "Failed to clear bucket")
            except NotFoundError:
                # Deleted concurrently
                continue

    async def _delete_bucket(self, bucket: str) -> None:
        await self._clear_bucket(bucket)
        await self._run(
            self.client.bucket(bucket).delete, f"Bucket not found: {bucket}")

    async def list_buckets(self) -> List[str]:
        """List all buckets of the project."""
        def collect() -> List[str]:
            return [b.name for b in self.client.list_buckets()]

        return await self._run(collect, "Failed to list buckets")

    async def add_file_from_path(
        self, orig_path: str, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """Upload a local file."""
        bucket = await self._resolve_bucket(bucket)
        if not await aiofiles.os.path.isfile(orig_path):
            raise NotFoundError(f"Source file not found: {orig_path}")
        blob = self._blob(bucket, target_path)
        await self._run(blob.upload_from_filename, "Failed to upload file", orig_path)

    async def add_file_from_buffer(
        self, data: bytes, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """Upload an in-memory buffer."""
        bucket = await self._resolve_bucket(bucket)
        blob = self._blob(bucket, target_path)
        await self._run(blob.upload_from_string, "Failed to upload file", data)

    async def _open_blob(
        self, bucket: str, name: str, start: int = 0, length: Optional[int] = None
    ) -> ByteStream:
        blob = self._blob(bucket, name)
        await self._run(blob.reload, f"File not found: {name}")
        validate_byte_range(start, length, blob.size or 0)

        reader = await self._run(blob.open, "Failed to open file", "rb")
        if start:
            await asyncio.to_thread(reader.seek, start)

        async def read_chunk(size: int) -> bytes:
            return await self._run(reader.read, "Failed to read file", size)

        async def close() -> None:
            await asyncio.to_thread(reader.close)

        return ByteStream(read_chunk, close, length=length, chunk_size=self.chunk_size)

    async def get_file_as_readable(
        self, name: str, bucket: Optional[str] = None
    ) -> ByteStream:
        """Stream a blob."""
        bucket = await self._resolve_bucket(bucket)
        return await self._open_blob(bucket, name)

    async def get_file_byte_range_as_readable(
        self,
        name: str,
        start: int,
        length: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> ByteStream:
        """Stream part of a blob."""
        bucket = await self._resolve_bucket(bucket)
        return await self._open_blob(bucket, name, start, length)

    async def remove_file(self, name: str, bucket: Optional[str] = None) -> None:
        """Delete a blob. Missing blobs are ignored."""
        bucket = await self._resolve_bucket(bucket)
        try:
            await self._run(self._blob(bucket, name).delete, "Failed to delete file")
        except NotFoundError:
            return

    async def list_files(self, bucket: Optional[str] = None) -> List[FileEntry]:
        """List all blobs in a bucket as (name, size) tuples."""
        bucket = await self._resolve_bucket(bucket)
        return [(blob.name, blob.size or 0) for blob in await self._list_blobs(bucket)]

    async def size_of(self, name: str, bucket: Optional[str] = None) -> int:
        """Get blob size in bytes."""
        bucket = await self._resolve_bucket(bucket)
        blob = self._blob(bucket, name)
        await self._run(blob.reload, f"File not found: {name}")
        return blob.size or 0

    async def aclose(self) -> None:
        """Close the client's HTTP session."""
        await asyncio.to_thread(self.client.close)
