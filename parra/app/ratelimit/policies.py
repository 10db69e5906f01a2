"""Predefined rate limit policies.

Login, signup, chat and note handlers bind to these by name, so the values
must not drift.
"""

from types import MappingProxyType
from typing import Mapping

from parra.app.ratelimit.models import RateLimitConfig

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

# Authentication
LOGIN = RateLimitConfig(max_attempts=5, window_ms=15 * MINUTE_MS, block_duration_ms=30 * MINUTE_MS)
SIGNUP = RateLimitConfig(max_attempts=3, window_ms=HOUR_MS, block_duration_ms=HOUR_MS)
PASSWORD_RESET = RateLimitConfig(max_attempts=3, window_ms=HOUR_MS)

# Chat
CHAT_MESSAGE = RateLimitConfig(max_attempts=30, window_ms=MINUTE_MS)
CHAT_SESSION = RateLimitConfig(max_attempts=10, window_ms=HOUR_MS)

# Notes and profile data
NOTE_CREATE = RateLimitConfig(max_attempts=20, window_ms=MINUTE_MS)
PROFILE_UPDATE = RateLimitConfig(max_attempts=5, window_ms=MINUTE_MS)

# API calls
API_CALL = RateLimitConfig(max_attempts=100, window_ms=MINUTE_MS)

RATE_LIMITS: Mapping[str, RateLimitConfig] = MappingProxyType({
    "login": LOGIN,
    "signup": SIGNUP,
    "password_reset": PASSWORD_RESET,
    "chat_message": CHAT_MESSAGE,
    "chat_session": CHAT_SESSION,
    "note_create": NOTE_CREATE,
    "profile_update": PROFILE_UPDATE,
    "api_call": API_CALL,
})


def get_policy(name: str) -> RateLimitConfig:
    """Look up a policy by name.

    Raises:
        KeyError: If no policy has that name.
    """
    try:
        return RATE_LIMITS[name]
    except KeyError:
        raise KeyError(f"Unknown rate limit policy: {name!r}") from None
