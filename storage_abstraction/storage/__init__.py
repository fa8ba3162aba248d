"""
Storage backend abstraction for file and bucket operations.

Provides one facade over local filesystem, S3 and Google Cloud adapters.
"""

from storage_abstraction.storage.adapter import StorageAdapter
from storage_abstraction.storage.config import (
    GoogleCloudConfig,
    LocalConfig,
    S3Config,
    resolve_config,
)
from storage_abstraction.storage.errors import (
    BackendError,
    ConfigurationError,
    NoBucketSelectedError,
    NotFoundError,
    StorageError,
)
from storage_abstraction.storage.facade import Storage, get_storage, reset_storage
from storage_abstraction.storage.factory import create_storage_adapter
from storage_abstraction.storage.filesystem import FilesystemStorage
from storage_abstraction.storage.gcs import GoogleCloudStorage
from storage_abstraction.storage.s3 import S3Storage
from storage_abstraction.storage.stream import ByteStream

__all__ = [
    "Storage",
    "StorageAdapter",
    "ByteStream",
    "StorageError",
    "ConfigurationError",
    "NoBucketSelectedError",
    "NotFoundError",
    "BackendError",
    "LocalConfig",
    "S3Config",
    "GoogleCloudConfig",
    "resolve_config",
    "create_storage_adapter",
    "FilesystemStorage",
    "S3Storage",
    "GoogleCloudStorage",
    "get_storage",
    "reset_storage",
]
