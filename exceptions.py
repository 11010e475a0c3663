"""
Custom exceptions for better error handling.
"""


class ZoomSyncException(Exception):
    """Base exception for report sync and meeting lifecycle errors."""
    pass


class DatabaseError(ZoomSyncException):
    """Database operation errors."""
    pass


class ConfigurationError(ZoomSyncException):
    """Configuration or environment variable errors."""
    pass


class APIError(ZoomSyncException):
    """Base class for API errors."""
    def __init__(self, message: str, status_code: int = None, platform: str = None):
        self.status_code = status_code
        self.platform = platform
        super().__init__(message)


class RateLimitError(APIError):
    """API rate limit exceeded."""
    def __init__(self, message: str, retry_after: int = None, platform: str = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429, platform=platform)


class ZoomAPIError(APIError):
    """Zoom API errors."""
    def __init__(self, message: str, status_code: int = None, code: int = None):
        self.code = code
        super().__init__(message, status_code=status_code, platform="zoom")


class ZoomNotFoundError(ZoomAPIError):
    """Meeting, webinar or report does not exist (anymore) on Zoom."""
    pass


class ZoomServerError(ZoomAPIError):
    """Zoom answered with a 5xx status."""
    pass


class NoMeetingsFoundError(ZoomSyncException):
    """Selector did not match any stored meeting details."""
    pass


class ReportQuotaExhaustedError(ZoomSyncException):
    """The report API call budget for this run is used up."""
    pass


class MeetingOptionsError(ValueError):
    """Conflicting meeting options were requested."""
    pass
