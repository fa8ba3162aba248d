# Test configuration

import pytest

from storage_abstraction.config.settings import get_settings
from storage_abstraction.storage.facade import reset_storage


@pytest.fixture
def local_config(tmp_path):
    """Configuration for a local store in a temporary directory."""
    return {"directory": str(tmp_path / "store")}


@pytest.fixture
def source_file(tmp_path):
    """A file on disk to upload from."""
    path = tmp_path / "a.txt"
    path.write_bytes(b"hello storage abstraction")
    return path


@pytest.fixture
def clean_settings(monkeypatch):
    """Clear cached settings and storage, and any STORAGE_* environment."""
    for key in (
        "STORAGE_TYPE",
        "STORAGE_BUCKET_NAME",
        "STORAGE_LOCAL_DIRECTORY",
        "STORAGE_ACCESS_KEY_ID",
        "STORAGE_SECRET_ACCESS_KEY",
        "STORAGE_ENDPOINT",
        "STORAGE_USE_DUALSTACK",
        "STORAGE_MAX_REDIRECTS",
        "STORAGE_GCS_PROJECT_ID",
        "STORAGE_GCS_KEY_FILENAME",
    ):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    reset_storage()
    yield
    get_settings.cache_clear()
    reset_storage()
