"""Uniform bucket and file storage over local, S3 and Google Cloud backends."""

from storage_abstraction.storage import (
    BackendError,
    ConfigurationError,
    NoBucketSelectedError,
    NotFoundError,
    Storage,
    StorageError,
)

__all__ = [
    "Storage",
    "StorageError",
    "ConfigurationError",
    "NoBucketSelectedError",
    "NotFoundError",
    "BackendError",
]
