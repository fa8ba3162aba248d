"""
Storage factory for creating storage adapter instances.

Maps a configuration onto the adapter of its backend.
"""

import logging
from typing import Any

from storage_abstraction.storage.adapter import StorageAdapter
from storage_abstraction.storage.config import (
    GoogleCloudConfig,
    LocalConfig,
    S3Config,
    resolve_config,
)
from storage_abstraction.storage.errors import ConfigurationError
from storage_abstraction.storage.filesystem import FilesystemStorage
from storage_abstraction.storage.gcs import GoogleCloudStorage
from storage_abstraction.storage.s3 import S3Storage
from storage_abstraction.storage.stream import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)


def create_storage_adapter(config: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> StorageAdapter:
    """
    Create the storage adapter matching a configuration.

    Args:
        config: Configuration model or mapping (see ``resolve_config``)
        chunk_size: Chunk size used by the adapter's read streams

    Returns:
        FilesystemStorage, S3Storage or GoogleCloudStorage

    Raises:
        ConfigurationError: If the configuration is not supported
    """
    resolved = resolve_config(config)

    if isinstance(resolved, LocalConfig):
        adapter = FilesystemStorage(
            directory=resolved.directory,
            bucket_name=resolved.bucket_name,
            chunk_size=chunk_size,
        )
    elif isinstance(resolved, S3Config):
        adapter = S3Storage(
            access_key_id=resolved.access_key_id,
            secret_access_key=resolved.secret_access_key,
            endpoint=resolved.endpoint,
            region=resolved.region,
            max_retries=resolved.max_retries,
            ssl_enabled=resolved.ssl_enabled,
            use_dualstack=resolved.use_dualstack,
            bucket_name=resolved.bucket_name,
            chunk_size=chunk_size,
        )
    elif isinstance(resolved, GoogleCloudConfig):
        adapter = GoogleCloudStorage(
            project_id=resolved.project_id,
            key_filename=resolved.key_filename,
            bucket_name=resolved.bucket_name,
            chunk_size=chunk_size,
        )
    else:
        raise ConfigurationError("Not a supported configuration")

    logger.info(f"Using {adapter.backend_name} storage backend")
    return adapter
