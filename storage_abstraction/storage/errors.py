"""
Exceptions shared by every storage backend.

Adapters translate provider-specific failures into these types so callers
only ever handle one error vocabulary.
"""

from typing import Optional


class StorageError(Exception):
    """Base exception for storage-related errors."""
    pass


class ConfigurationError(StorageError):
    """Raised when a configuration does not match any supported backend."""
    pass


class NoBucketSelectedError(StorageError):
    """Raised when a bucket-scoped operation has no bucket to work on."""

    def __init__(self, message: str = "No bucket selected"):
        super().__init__(message)


class NotFoundError(StorageError):
    """Raised when a bucket or file does not exist."""
    pass


class BackendError(StorageError):
    """
    Wraps a failure reported by the underlying provider.

    The original exception's message is preserved and the exception itself
    is kept in ``original``.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original

    @classmethod
    def wrap(cls, exc: BaseException, context: str = "") -> "BackendError":
        """Build a BackendError carrying the message of ``exc``."""
        message = f"{context}: {exc}" if context else str(exc)
        return cls(message, original=exc)
