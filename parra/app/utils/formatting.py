"""Human-readable rendering of rate limit wait times."""

import math


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_remaining(ms: int) -> str:
    """Format a wait time in milliseconds for display to end users.

    Rounds up at each unit so the user is never told to retry too early.

    Examples:
        >>> format_time_remaining(400)
        'a moment'
        >>> format_time_remaining(1500)
        '2 seconds'
        >>> format_time_remaining(15 * 60 * 1000)
        '15 minutes'
    """
    if ms < 1000:
        return "a moment"

    seconds = math.ceil(ms / 1000)
    if seconds < 60:
        return _plural(seconds, "second")

    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return _plural(minutes, "minute")

    hours = math.ceil(minutes / 60)
    return _plural(hours, "hour")
