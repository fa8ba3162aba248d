"""
Prometheus metrics for monitoring and observability.

Provides counters and histograms for tracking storage operations per
backend: how many ran, how many failed, and how long they took.
"""

import inspect
import time
from functools import wraps
from typing import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a global registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

storage_operations_total = Counter(
    "storage_operations_total",
    "Total number of storage operations",
    ["backend", "operation", "status"],  # local/s3/gcs, ..., success/failure
    registry=REGISTRY,
)

storage_bytes_written_total = Counter(
    "storage_bytes_written_total",
    "Total bytes stored through the facade",
    ["backend"],
    registry=REGISTRY,
)

# ========== Histograms ==========

storage_operation_duration_seconds = Histogram(
    "storage_operation_duration_seconds",
    "Time to complete a storage operation",
    ["backend", "operation"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
    registry=REGISTRY,
)


def _observe(backend: str, operation: str, status: str, start_time: float) -> None:
    duration = time.time() - start_time
    storage_operation_duration_seconds.labels(
        backend=backend, operation=operation).observe(duration)
    storage_operations_total.labels(
        backend=backend, operation=operation, status=status).inc()


def track_storage_operation(operation: str):
    """
    Decorator to track storage operation count and latency.

    The decorated method's instance must expose a ``backend_name`` attribute.

    Args:
        operation: Operation name (e.g. 'list_files')
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(self, *args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return await func(self, *args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                _observe(self.backend_name, operation, status, start_time)

        @wraps(func)
        def sync_wrapper(self, *args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return func(self, *args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                _observe(self.backend_name, operation, status, start_time)

        # Return appropriate wrapper based on function type
        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def record_bytes_written(backend: str, size: int) -> None:
    """Count bytes stored on a backend."""
    storage_bytes_written_total.labels(backend=backend).inc(size)


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST
