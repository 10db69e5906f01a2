"""Core utilities for the rate limiting package."""

from parra.app.core.clock import Clock, ManualClock, now_ms
from parra.app.core.config import Settings, settings
from parra.app.core.errors import sanitize_error_message
from parra.app.core.logging import get_log_context, get_logger, setup_logging

__all__ = [
    "Clock",
    "ManualClock",
    "now_ms",
    "Settings",
    "settings",
    "sanitize_error_message",
    "get_log_context",
    "get_logger",
    "setup_logging",
]
