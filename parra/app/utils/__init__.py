"""Timing and formatting helpers."""

from parra.app.utils.formatting import format_time_remaining
from parra.app.utils.timing import debounce, throttle

__all__ = [
    "format_time_remaining",
    "debounce",
    "throttle",
]
