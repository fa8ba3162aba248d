"""
Structured JSON logging with correlation IDs and operation timing.

Provides:
- JSON format for log aggregation
- Correlation IDs shared by all log lines of one logical operation
- Structured metadata
- Performance tracking
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Context variable for the correlation ID (task-local under asyncio)
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None)

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer", "google.auth")


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in JSON format with standardized fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed as extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class PerformanceTracker:
    """
    Context manager for tracking operation performance.

    Usage:
        with PerformanceTracker("move_uploaded_file", logger, path=path):
            ...

    Works inside coroutines as well; only the time spent between enter and
    exit is measured.
    """

    def __init__(
        self,
        operation: str,
        logger: logging.Logger,
        log_level: int = logging.INFO,
        **extra_fields,
    ):
        """
        Initialize performance tracker.

        Args:
            operation: Operation name
            logger: Logger instance
            log_level: Log level for completion message
            **extra_fields: Additional structured fields
        """
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.extra_fields = extra_fields
        self.start_time: Optional[float] = None

    def _extra(self, **fields) -> dict:
        extra = {"operation": self.operation, **self.extra_fields, **fields}
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            extra["correlation_id"] = correlation_id
        return {"extra_fields": extra}

    def __enter__(self):
        """Start timing."""
        self.start_time = time.time()
        self.logger.debug(
            f"Starting operation: {self.operation}", extra=self._extra())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Log completion with duration."""
        duration_ms = round((time.time() - self.start_time) * 1000, 2)

        if exc_type:
            self.logger.error(
                f"Operation failed: {self.operation}",
                extra=self._extra(
                    duration_ms=duration_ms,
                    error=str(exc_val),
                    error_type=exc_type.__name__,
                ),
            )
        else:
            self.logger.log(
                self.log_level,
                f"Operation completed: {self.operation}",
                extra=self._extra(duration_ms=duration_ms),
            )


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """
    Configure application logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting if True, standard format if False
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID in context.

    Args:
        correlation_id: Correlation ID (generated if not provided)

    Returns:
        Correlation ID
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_ctx.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id_ctx.get()


def clear_correlation_id():
    """Clear correlation ID from context."""
    correlation_id_ctx.set(None)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None):
    """
    Run a block under one correlation ID.

    An ID already set by the caller is kept unless a new one is passed.
    The previous ID is restored on exit.

    Yields:
        The correlation ID in effect inside the block
    """
    previous = get_correlation_id()
    if correlation_id is None and previous is not None:
        yield previous
        return
    current = set_correlation_id(correlation_id)
    try:
        yield current
    finally:
        correlation_id_ctx.set(previous)


def setup_logging_from_settings():
    """Configure application logging from ``LOG_LEVEL`` and ``LOG_JSON`` settings."""
    from storage_abstraction.config.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)
