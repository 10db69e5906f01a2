"""Middleware package for HTTP services using the rate limiters."""

from parra.app.middleware.rate_limit import (
    RateLimitMiddleware,
    rate_limit_exception_handler,
    rate_limit_response,
)

__all__ = [
    "RateLimitMiddleware",
    "rate_limit_exception_handler",
    "rate_limit_response",
]
