"""
Utility functions for the report sync service.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple, Type

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from config import settings
from exceptions import RateLimitError, ZoomServerError

# tenacity's before_sleep_log expects a stdlib logger
retry_logger = logging.getLogger("zoom_retry")

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    RateLimitError,
    ZoomServerError,
    httpx.TransportError,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC already."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_zoom_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp from Zoom into naive UTC.

    Args:
        value: String like "2019-01-01T00:00:00Z"

    Returns:
        Naive UTC datetime or None
    """
    if not value:
        return None
    return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_zoom_datetime(value: datetime) -> str:
    """Format a datetime the way Zoom insists on: UTC with a trailing 'Z'."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string like "2m 30s"
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


def retry_policy(
    max_attempts: int = None,
    backoff_base: float = None,
    max_wait: int = None,
    retry_on: tuple = None
) -> AsyncRetrying:
    """
    Build a bounded exponential-backoff retry loop.

    Usage:
        async for attempt in retry_policy():
            with attempt:
                response = await client.get(url)

    Args:
        max_attempts: Maximum attempts (default from config)
        backoff_base: Base for exponential backoff (default from config)
        max_wait: Maximum wait time in seconds (default from config)
        retry_on: Tuple of exception types to retry on

    Returns:
        Configured AsyncRetrying instance; the last error is re-raised
    """
    max_attempts = max_attempts or settings.max_retries
    backoff_base = backoff_base or settings.retry_backoff_base
    max_wait = max_wait or settings.retry_max_wait

    if retry_on is None:
        retry_on = RETRYABLE_ERRORS

    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=max_wait, exp_base=backoff_base),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(retry_logger, logging.WARNING),
        reraise=True,
    )

