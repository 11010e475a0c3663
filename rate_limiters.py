"""
Rate limiting configuration for Zoom API calls.
"""
from aiolimiter import AsyncLimiter

from config import settings


class RateLimiters:
    """Centralized rate limiters for the Zoom API classes."""

    def __init__(self, api_rate: int = None, report_rate: int = None):
        """Initialize rate limiters, falling back to configured limits."""
        # Meeting create/update/get endpoints ("Medium"/"Light" on Zoom's side)
        self.zoom_general_limiter = AsyncLimiter(
            max_rate=api_rate or settings.zoom_api_rate_limit, time_period=1
        )

        # Report endpoints are "Heavy" and share a much smaller budget
        self.zoom_report_limiter = AsyncLimiter(
            max_rate=report_rate or settings.zoom_report_rate_limit, time_period=1
        )

    async def acquire_zoom_general_limit(self):
        """Acquire rate limit slot for Zoom meeting API."""
        async with self.zoom_general_limiter:
            pass

    async def acquire_zoom_report_limit(self):
        """Acquire rate limit slot for Zoom report API."""
        async with self.zoom_report_limiter:
            pass


# Global rate limiters instance
rate_limiters = RateLimiters()
