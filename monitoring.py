"""
Monitoring and metrics collection using Prometheus.
"""
from prometheus_client import Counter, Histogram, generate_latest, REGISTRY
from typing import Callable
import asyncio
import time
import functools


# Metrics
zoom_requests_total = Counter(
    'zoom_requests_total',
    'Total number of Zoom API requests made',
    ['endpoint', 'status']
)

zoom_request_duration = Histogram(
    'zoom_request_duration_seconds',
    'Duration of Zoom API requests',
    ['endpoint']
)

report_meetings_synced_total = Counter(
    'report_meetings_synced_total',
    'Meeting occurrences handled by the report sync',
    ['status']
)

report_participants_total = Counter(
    'report_participants_total',
    'Participation records handled by the report sync',
    ['result']
)

report_sync_duration = Histogram(
    'report_sync_duration_seconds',
    'Duration of report sync runs'
)

meetings_saved_total = Counter(
    'meetings_saved_total',
    'Meetings created or updated on Zoom',
    ['operation', 'status']
)

errors_total = Counter(
    'errors_total',
    'Total number of errors by type',
    ['error_type', 'component']
)


def track_time(metric: Histogram, labels: dict = None):
    """
    Decorator to track execution time of a coroutine function.

    Args:
        metric: Prometheus Histogram metric
        labels: Optional labels for the metric
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                if labels:
                    metric.labels(**labels).observe(duration)
                else:
                    metric.observe(duration)

        if not asyncio.iscoroutinefunction(func):
            raise TypeError("track_time only wraps coroutine functions")
        return async_wrapper

    return decorator


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def record_error(error_type: str, component: str):
    """
    Record an error occurrence.

    Args:
        error_type: Type of error (e.g., 'ZoomNotFoundError')
        component: Component where error occurred (e.g., 'report_sync')
    """
    errors_total.labels(error_type=error_type, component=component).inc()
