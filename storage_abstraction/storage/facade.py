"""
Storage facade.

``Storage`` holds exactly one storage adapter, chosen from the shape of its
configuration, and forwards every operation to it unchanged.

Usage:
    storage = Storage({"directory": "/tmp/store"})
    await storage.select_bucket("docs")
    await storage.add_file_from_path("./a.txt", "report.txt")
    files = await storage.list_files()
"""

import logging
from functools import lru_cache
from typing import Any, List, Optional

import aiofiles.os

from storage_abstraction.common.metrics import record_bytes_written, track_storage_operation
from storage_abstraction.config.settings import get_settings
from storage_abstraction.storage.adapter import FileEntry, StorageAdapter
from storage_abstraction.storage.factory import create_storage_adapter
from storage_abstraction.storage.stream import DEFAULT_CHUNK_SIZE, ByteStream

logger = logging.getLogger(__name__)


class Storage:
    """
    Uniform storage interface over the local filesystem, S3 and Google Cloud.

    Errors raised by the adapter propagate unchanged.
    """

    def __init__(self, config: Any, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize the facade.

        Args:
            config: Configuration model or mapping
            chunk_size: Chunk size of read streams

        Raises:
            ConfigurationError: If the configuration is not supported
        """
        self.chunk_size = chunk_size
        self.storage: StorageAdapter = create_storage_adapter(config, chunk_size)

    @property
    def backend_name(self) -> str:
        return self.storage.backend_name

    def switch_storage(self, config: Any) -> None:
        """
        Replace the adapter with one built from a new configuration.

        The previous adapter and its bucket selection are discarded. Call
        ``aclose()`` first to release its resources.

        Raises:
            ConfigurationError: If the configuration is not supported
        """
        self.storage = create_storage_adapter(config, self.chunk_size)
        logger.info(f"Switched storage backend to {self.backend_name}")

    @track_storage_operation("test")
    async def test(self) -> None:
        return await self.storage.test()

    @track_storage_operation("create_bucket")
    async def create_bucket(self, name: Optional[str] = None) -> None:
        return await self.storage.create_bucket(name)

    @track_storage_operation("select_bucket")
    async def select_bucket(self, name: Optional[str]) -> None:
        return await self.storage.select_bucket(name)

    @track_storage_operation("clear_bucket")
    async def clear_bucket(self, name: Optional[str] = None) -> None:
        return await self.storage.clear_bucket(name)

    @track_storage_operation("delete_bucket")
    async def delete_bucket(self, name: Optional[str] = None) -> None:
        return await self.storage.delete_bucket(name)

    @track_storage_operation("list_buckets")
    async def list_buckets(self) -> List[str]:
        return await self.storage.list_buckets()

    def get_selected_bucket(self) -> Optional[str]:
        return self.storage.get_selected_bucket()

    @track_storage_operation("add_file_from_path")
    async def add_file_from_path(
        self, orig_path: str, target_path: str, bucket: Optional[str] = None
    ) -> None:
        try:
            size = await aiofiles.os.path.getsize(orig_path)
        except OSError:
            # Missing source; the adapter reports it
            size = None
        await self.storage.add_file_from_path(orig_path, target_path, bucket=bucket)
        if size is not None:
            record_bytes_written(self.backend_name, size)

    @track_storage_operation("add_file_from_buffer")
    async def add_file_from_buffer(
        self, data: bytes, target_path: str, bucket: Optional[str] = None
    ) -> None:
        await self.storage.add_file_from_buffer(data, target_path, bucket=bucket)
        record_bytes_written(self.backend_name, len(data))

    @track_storage_operation("get_file_as_readable")
    async def get_file_as_readable(
        self, name: str, bucket: Optional[str] = None
    ) -> ByteStream:
        return await self.storage.get_file_as_readable(name, bucket=bucket)

    @track_storage_operation("get_file_byte_range_as_readable")
    async def get_file_byte_range_as_readable(
        self,
        name: str,
        start: int,
        length: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> ByteStream:
        return await self.storage.get_file_byte_range_as_readable(
            name, start, length, bucket=bucket)

    @track_storage_operation("remove_file")
    async def remove_file(self, name: str, bucket: Optional[str] = None) -> None:
        return await self.storage.remove_file(name, bucket=bucket)

    @track_storage_operation("list_files")
    async def list_files(self, bucket: Optional[str] = None) -> List[FileEntry]:
        return await self.storage.list_files(bucket=bucket)

    @track_storage_operation("size_of")
    async def size_of(self, name: str, bucket: Optional[str] = None) -> int:
        return await self.storage.size_of(name, bucket=bucket)

    async def aclose(self) -> None:
        """Release the adapter's backend resources."""
        await self.storage.aclose()

    async def __aenter__(self) -> "Storage":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


@lru_cache()
def get_storage() -> Storage:
    """
    Get the storage facade configured from settings.

    Returns:
        Storage instance built from ``Settings.storage_config()``
    """
    settings = get_settings()
    return Storage(settings.storage_config(), chunk_size=settings.storage_stream_chunk_size)


def reset_storage() -> None:
    """Reset the cached storage facade (useful for testing)."""
    get_storage.cache_clear()
