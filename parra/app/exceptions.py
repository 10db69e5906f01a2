"""Custom exceptions for the rate limiting package."""

import math

from parra.app.utils.formatting import format_time_remaining


class ParraException(Exception):
    """Base class for application exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Parra Connect error"):
        self.message = message
        super().__init__(message)


class RateLimitError(ParraException):
    """Raised by callers that turn a denied admission into a failure.

    The limiters themselves never raise this; it is for form handlers and
    HTTP endpoints that want to abort the guarded action.
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, message: str, reset_in: int, remaining: int = 0):
        self.reset_in = reset_in
        self.remaining = remaining
        super().__init__(message)

    @property
    def retry_after(self) -> int:
        """Seconds until the caller may retry, rounded up."""
        return max(0, math.ceil(self.reset_in / 1000))

    def user_message(self) -> str:
        """Get user-friendly error message."""
        return f"Too many attempts. Please try again in {format_time_remaining(self.reset_in)}."


class InvalidRateLimitConfigError(ParraException, ValueError):
    """Raised when a rate limit policy has out-of-range values.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400


class AdmissionStateError(ParraException, RuntimeError):
    """Raised when an admission is committed or cancelled out of order."""
    status_code = 500
