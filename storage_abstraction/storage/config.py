"""
Storage configuration shapes and the resolver that picks one of them.

Three backends are supported, each with its own configuration model:
- LocalConfig: a directory on the local filesystem
- S3Config: an access key pair for an S3-compatible object store
- GoogleCloudConfig: a project id and service-account key file

Models carry an explicit ``type`` tag. Untagged mappings are still accepted
and are matched on the presence of each backend's distinguishing field, in
the order directory, access key, key file.
"""

from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from storage_abstraction.storage.errors import ConfigurationError


class _BaseStorageConfig(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    bucket_name: Optional[str] = None


class LocalConfig(_BaseStorageConfig):
    """Store buckets as directories below ``directory``."""

    type: Literal["local"] = "local"
    directory: str


class S3Config(_BaseStorageConfig):
    """Store buckets in an S3-compatible object store."""

    type: Literal["s3"] = "s3"
    access_key_id: str
    secret_access_key: str
    endpoint: Optional[str] = None
    region: str = "us-east-1"
    max_retries: int = 3
    max_redirects: Optional[int] = None
    ssl_enabled: bool = True
    use_dualstack: bool = False


class GoogleCloudConfig(_BaseStorageConfig):
    """Store buckets in Google Cloud Storage."""

    type: Literal["gcs"] = "gcs"
    project_id: str
    key_filename: str


StorageConfig = Annotated[
    Union[LocalConfig, S3Config, GoogleCloudConfig],
    Field(discriminator="type"),
]

_tagged_adapter: TypeAdapter = TypeAdapter(StorageConfig)

# Distinguishing field of each shape, in precedence order.
_PRESENCE_ORDER = (
    (("directory",), LocalConfig),
    (("access_key_id", "accessKeyId"), S3Config),
    (("key_filename", "keyFilename"), GoogleCloudConfig),
)

UNSUPPORTED_MESSAGE = "Not a supported configuration"


def _has_field(config: Mapping[str, Any], names: tuple) -> bool:
    return any(config.get(name) is not None for name in names)


def resolve_config(config: Any) -> Union[LocalConfig, S3Config, GoogleCloudConfig]:
    """
    Turn a configuration value into exactly one typed configuration.

    Args:
        config: A configuration model, or a mapping that is either tagged
            with ``type`` or matches one shape by field presence

    Returns:
        LocalConfig, S3Config or GoogleCloudConfig

    Raises:
        ConfigurationError: If no shape matches or the matched shape is invalid
    """
    if isinstance(config, (LocalConfig, S3Config, GoogleCloudConfig)):
        return config

    if not isinstance(config, Mapping):
        raise ConfigurationError(UNSUPPORTED_MESSAGE)

    try:
        if config.get("type") is not None:
            return _tagged_adapter.validate_python(dict(config))

        for names, model in _PRESENCE_ORDER:
            if _has_field(config, names):
                data = {k: v for k, v in config.items() if k != "type"}
                return model.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"{UNSUPPORTED_MESSAGE}: {e}") from e

    raise ConfigurationError(UNSUPPORTED_MESSAGE)
