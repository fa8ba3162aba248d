# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache
from typing import Any, Dict, Optional


class Settings(BaseSettings):
    # Storage backend ("local", "s3" or "gcs"); inferred from the fields below when unset
    storage_type: Optional[str] = None
    storage_bucket_name: Optional[str] = None
    storage_stream_chunk_size: int = 64 * 1024

    # Local filesystem
    storage_local_directory: Optional[str] = None

    # S3-compatible
    storage_access_key_id: Optional[str] = None
    storage_secret_access_key: Optional[str] = None
    storage_endpoint: Optional[str] = None
    storage_region: str = "us-east-1"
    storage_max_retries: int = 3
    storage_ssl_enabled: bool = True
    storage_use_dualstack: bool = False
    storage_max_redirects: Optional[int] = None

    # Google Cloud
    storage_gcs_project_id: Optional[str] = None
    storage_gcs_key_filename: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def storage_config(self) -> Dict[str, Any]:
        """
        Build the configuration mapping handed to the storage resolver.

        Unset fields are left out so the resolver can match on presence.
        """
        config = {
            "type": self.storage_type,
            "bucket_name": self.storage_bucket_name,
            "directory": self.storage_local_directory,
            "access_key_id": self.storage_access_key_id,
            "secret_access_key": self.storage_secret_access_key,
            "endpoint": self.storage_endpoint,
            "project_id": self.storage_gcs_project_id,
            "key_filename": self.storage_gcs_key_filename,
        }
        config = {k: v for k, v in config.items() if v is not None}
        if self.storage_access_key_id is not None:
            config.update(
                region=self.storage_region,
                max_retries=self.storage_max_retries,
                ssl_enabled=self.storage_ssl_enabled,
                use_dualstack=self.storage_use_dualstack,
            )
            if self.storage_max_redirects is not None:
                config["max_redirects"] = self.storage_max_redirects
        return config


@lru_cache()
def get_settings() -> Settings:
    return Settings()
