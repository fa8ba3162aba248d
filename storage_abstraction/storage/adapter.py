"""
Abstract base class for storage backends.

Defines the interface that all storage implementations must follow, plus
the bucket selection behavior they share.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from slugify import slugify

from storage_abstraction.storage.errors import (
    BackendError,
    NoBucketSelectedError,
)
from storage_abstraction.storage.stream import ByteStream

logger = logging.getLogger(__name__)

FileEntry = Tuple[str, int]


def slugify_bucket_name(name: str) -> str:
    """
    Normalize a bucket name for use against a backend.

    Args:
        name: Requested bucket name

    Returns:
        Lowercased name with whitespace and invalid characters replaced by '-'

    Raises:
        BackendError: If nothing usable is left of the name
    """
    slug = slugify(name)
    if not slug:
        raise BackendError(f"Invalid bucket name: {name!r}")
    return slug


def normalize_key(name: str) -> str:
    """Turn a file name into a bucket-relative POSIX key."""
    key = name.replace("\\", "/").lstrip("/")
    if not key:
        raise BackendError(f"Invalid file name: {name!r}")
    return key


def validate_byte_range(start: int, length: Optional[int], size: int) -> None:
    """
    Check a requested byte range against a file size.

    Raises:
        BackendError: If the range is negative or starts past the end of file
    """
    if start < 0:
        raise BackendError(f"Invalid byte range: start {start} is negative")
    if length is not None and length < 0:
        raise BackendError(f"Invalid byte range: length {length} is negative")
    if start > size:
        raise BackendError(
            f"Invalid byte range: start {start} exceeds file size {size}")


class StorageAdapter(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations (local filesystem, S3, Google Cloud) must
    implement these methods to provide a consistent interface.

    Every file operation takes an optional ``bucket`` keyword. When it is
    omitted the currently selected bucket is used.
    """

    backend_name = "abstract"

    def __init__(self, bucket_name: Optional[str] = None):
        """
        Initialize selection state.

        Args:
            bucket_name: Bucket to select initially. It is created on first
                use rather than at construction time.
        """
        self._selected_bucket: Optional[str] = None
        self._selected_bucket_ready = False
        if bucket_name:
            self._selected_bucket = slugify_bucket_name(bucket_name)

    # ------------------------------------------------------------------
    # Shared bucket behavior
    # ------------------------------------------------------------------

    def get_selected_bucket(self) -> Optional[str]:
        """Return the name of the selected bucket, or None."""
        return self._selected_bucket

    async def test(self) -> None:
        """
        Check that the backend is usable.

        Raises:
            StorageError: If buckets cannot be listed
        """
        await self.list_buckets()

    async def create_bucket(self, name: Optional[str] = None) -> None:
        """
        Create a bucket. Succeeds if the bucket already exists.

        Note that the bucket is not selected; use ``select_bucket`` for that.

        Args:
            name: Bucket name (slugified). Defaults to the selected bucket.

        Raises:
            NoBucketSelectedError: If no name is given and none is selected
        """
        if name is None:
            if self._selected_bucket is None:
                raise NoBucketSelectedError()
            bucket = self._selected_bucket
        else:
            bucket = slugify_bucket_name(name)
        await self._create_bucket(bucket)
        if bucket == self._selected_bucket:
            self._selected_bucket_ready = True

    async def select_bucket(self, name: Optional[str]) -> None:
        """
        Select the bucket used by file operations.

        Args:
            name: Bucket name (slugified), created if it does not exist.
                None clears the selection.
        """
        if name is None:
            self._selected_bucket = None
            self._selected_bucket_ready = False
            return

        bucket = slugify_bucket_name(name)
        await self._create_bucket(bucket)
        self._selected_bucket = bucket
        self._selected_bucket_ready = True
        logger.info(f"Selected bucket {bucket} on {self.backend_name}")

    async def clear_bucket(self, name: Optional[str] = None) -> None:
        """
        Delete every file in a bucket.

        Args:
            name: Bucket name. Defaults to the selected bucket.

        Raises:
            NoBucketSelectedError: If no name is given and none is selected
        """
        bucket = await self._resolve_bucket(name)
        await self._clear_bucket(bucket)
        logger.info(f"Cleared bucket {bucket} on {self.backend_name}")

    async def delete_bucket(self, name: Optional[str] = None) -> None:
        """
        Delete a bucket and its content.

        Deleting the selected bucket clears the selection.

        Args:
            name: Bucket name. Defaults to the selected bucket.

        Raises:
            NoBucketSelectedError: If no name is given and none is selected
        """
        bucket = await self._resolve_bucket(name, create=False)
        await self._delete_bucket(bucket)
        if bucket == self._selected_bucket:
            self._selected_bucket = None
            self._selected_bucket_ready = False
        logger.info(f"Deleted bucket {bucket} on {self.backend_name}")

    async def aclose(self) -> None:
        """Release backend connection state."""
        return None

    async def _resolve_bucket(self, name: Optional[str] = None, create: bool = True) -> str:
        """
        Pick the bucket an operation works on.

        Args:
            name: Explicit bucket name, used as-is after slugification
            create: Create the selected bucket if it has not been created yet

        Returns:
            Slugified bucket name

        Raises:
            NoBucketSelectedError: If no name is given and none is selected
        """
        if name is not None:
            return slugify_bucket_name(name)
        if self._selected_bucket is None:
            raise NoBucketSelectedError()
        if create and not self._selected_bucket_ready:
            await self._create_bucket(self._selected_bucket)
            self._selected_bucket_ready = True
        return self._selected_bucket

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _create_bucket(self, bucket: str) -> None:
        """Create ``bucket`` if it does not exist yet."""
        pass

    @abstractmethod
    async def _clear_bucket(self, bucket: str) -> None:
        """Delete every file in ``bucket``."""
        pass

    @abstractmethod
    async def _delete_bucket(self, bucket: str) -> None:
        """
        Delete ``bucket`` and everything in it.

        Raises:
            NotFoundError: If the bucket does not exist
        """
        pass

    @abstractmethod
    async def list_buckets(self) -> List[str]:
        """
        List the names of all buckets visible to this backend.

        Returns:
            Bucket names, empty if there are none
        """
        pass

    @abstractmethod
    async def add_file_from_path(
        self, orig_path: str, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """
        Copy a local file into a bucket.

        Args:
            orig_path: Path of the file to copy
            target_path: Key to store the file under; intermediate folders
                are created automatically and existing files are overwritten
            bucket: Bucket name (defaults to the selected bucket)

        Raises:
            NoBucketSelectedError: If no bucket is available
            StorageError: If the copy fails
        """
        pass

    @abstractmethod
    async def add_file_from_buffer(
        self, data: bytes, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """
        Store an in-memory buffer in a bucket.

        Args:
            data: File content
            target_path: Key to store the content under
            bucket: Bucket name (defaults to the selected bucket)
        """
        pass

    @abstractmethod
    async def get_file_as_readable(
        self, name: str, bucket: Optional[str] = None
    ) -> ByteStream:
        """
        Open a stored file as a byte stream.

        Raises:
            NotFoundError: If the file does not exist
        """
        pass

    @abstractmethod
    async def get_file_byte_range_as_readable(
        self,
        name: str,
        start: int,
        length: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> ByteStream:
        """
        Open part of a stored file as a byte stream.

        Args:
            name: File key
            start: First byte to return (0-based)
            length: Number of bytes to return (None = until end of file)
            bucket: Bucket name (defaults to the selected bucket)

        Raises:
            NotFoundError: If the file does not exist
            BackendError: If ``start`` lies past the end of the file
        """
        pass

    @abstractmethod
    async def remove_file(self, name: str, bucket: Optional[str] = None) -> None:
        """
        Delete a stored file. Missing files are ignored.
        """
        pass

    @abstractmethod
    async def list_files(self, bucket: Optional[str] = None) -> List[FileEntry]:
        """
        List all files in a bucket.

        Returns:
            (path, size in bytes) tuples

        Raises:
            NoBucketSelectedError: If no bucket is available
        """
        pass

    @abstractmethod
    async def size_of(self, name: str, bucket: Optional[str] = None) -> int:
        """
        Get a file's size in bytes.

        Raises:
            NotFoundError: If the file does not exist
        """
        pass
