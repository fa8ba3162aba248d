"""
Media upload service.

Moves uploaded temporary files into storage, keeps an optional metadata
record for each stored file, and removes files again.
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, List, Optional, Protocol

from slugify import slugify

from storage_abstraction.common.logging_config import PerformanceTracker, correlation_scope
from storage_abstraction.storage.adapter import FileEntry
from storage_abstraction.storage.errors import NotFoundError, StorageError
from storage_abstraction.storage.facade import Storage

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = frozenset([
    "image/png",
    "image/jpg",
    "image/jpeg",
    "image/gif",
    "image/svg+xml",
    "image/svg",
    "application/svg",
    "application/svg+xml",
    "application/pdf",
    "application/x-pdf",
    "application/msword",
    "application/vnd.ms-excel",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
])


class MediaServiceError(Exception):
    """Exception raised during media service operations."""
    pass


class UnsupportedMediaTypeError(MediaServiceError):
    """Raised when an upload's content type is not accepted."""
    pass


class MoveFailedError(MediaServiceError):
    """Raised when an upload could not be copied into storage."""
    pass


@dataclass
class UploadedFile:
    """A temporary file received from an upload."""
    path: str
    original_name: str
    mime_type: Optional[str] = None


@dataclass
class StoredFile:
    """Result of moving an upload into storage."""
    original_name: str
    path: str
    size: int


@dataclass
class MediaFileRecord:
    """Metadata kept for a stored file."""
    id: Any
    name: str
    path: str
    size: int


class MediaFileRepository(Protocol):
    """Persistence for media file metadata."""

    async def create(self, name: str, path: str, size: int) -> MediaFileRecord:
        ...

    async def find_one(self, record_id: Any) -> Optional[MediaFileRecord]:
        ...

    async def remove(self, record: MediaFileRecord) -> None:
        ...


def storage_name_for(original_name: str) -> str:
    """
    Derive the stored file name from an uploaded file name.

    'My Report (1).PDF' -> 'my-report-1.pdf'
    """
    name = PurePosixPath(original_name.replace("\\", "/")).name
    suffix = PurePosixPath(name).suffix.lower()
    stem = slugify(name[:len(name) - len(suffix)] if suffix else name)
    return f"{stem or 'file'}{suffix}"


class MediaFileService:
    """
    Service handling uploaded media files.

    Only content types listed in SUPPORTED_MIME_TYPES are accepted.
    """

    def __init__(self, storage: Storage, repository: Optional[MediaFileRepository] = None):
        """
        Initialize media file service.

        Args:
            storage: Storage facade with the target bucket selected
            repository: Optional metadata repository
        """
        self.storage = storage
        self.repository = repository

    async def move_uploaded_file(self, upload: UploadedFile, location: str = "") -> StoredFile:
        """
        Copy an uploaded file into storage.

        Args:
            upload: Uploaded temporary file
            location: Folder inside the bucket to store the file in

        Returns:
            StoredFile with the original name, storage path and stored size

        Raises:
            UnsupportedMediaTypeError: If the content type is not supported
            MoveFailedError: If storing the file fails
        """
        mime_type = upload.mime_type or mimetypes.guess_type(upload.original_name)[0]
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise UnsupportedMediaTypeError(
                f"Unsupported file type: {mime_type or 'unknown'}")

        name = storage_name_for(upload.original_name)
        folder = location.strip("/")
        path = f"{folder}/{name}" if folder else name

        with correlation_scope(), PerformanceTracker("move_uploaded_file", logger, path=path):
            try:
                await self.storage.add_file_from_path(upload.path, path)
                size = await self.storage.size_of(path)
            except StorageError as e:
                raise MoveFailedError(f"Failed to move uploaded file: {e}") from e

        stored = StoredFile(original_name=upload.original_name, path=path, size=size)
        if self.repository is not None:
            await self.repository.create(name=stored.original_name, path=stored.path, size=stored.size)
        return stored

    async def get_stored_files(self) -> List[FileEntry]:
        """List all files in the selected bucket."""
        return await self.storage.list_files()

    async def unlink_media_file(self, path: str) -> bool:
        """Remove a stored file by its storage path."""
        await self.storage.remove_file(path)
        logger.info(f"Removed media file {path}")
        return True

    async def delete_media_file(self, record_id: Any) -> bool:
        """
        Remove a stored file and its metadata record.

        Raises:
            MediaServiceError: If no repository is configured
            NotFoundError: If the record does not exist
        """
        if self.repository is None:
            raise MediaServiceError("No media file repository configured")

        record = await self.repository.find_one(record_id)
        if record is None:
            raise NotFoundError(f"Media file {record_id} not found")

        with correlation_scope():
            await self.unlink_media_file(record.path)
            await self.repository.remove(record)
            logger.info(f"Deleted media file record {record_id}")
        return True
