"""Sanitization of backend error strings before they reach end users.

Auth backends return messages such as "User already registered" that leak
implementation details. Form handlers pass them through here and show only
the mapped text; the raw message is logged server-side.
"""

from parra.app.core.logging import get_logger

logger = get_logger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password. Please try again."

ERROR_MESSAGES: dict[str, dict[str, str]] = {
    "login": {
        "Invalid login credentials": _INVALID_CREDENTIALS,
        "Email not confirmed": "Please verify your email address before logging in.",
        "User not found": _INVALID_CREDENTIALS,
        "Invalid password": _INVALID_CREDENTIALS,
        "Too many requests": "Too many login attempts. Please try again later.",
    },
    "signup": {
        "User already registered": "An account with this email already exists.",
        "Password should be at least 6 characters": "Password must be at least 8 characters long.",
        "Unable to validate email address": "Please enter a valid email address.",
        "Signup requires a valid password": "Please enter a valid password.",
    },
}

GENERIC_MESSAGES: dict[str, str] = {
    "login": "An error occurred during login. Please try again.",
    "signup": "An error occurred during signup. Please try again.",
}

DEFAULT_MESSAGE = "An unexpected error occurred. Please try again."


def sanitize_error_message(raw: str | None, context: str) -> str:
    """Map a raw backend error to a message that is safe to display.

    Args:
        raw: Error message as returned by the backend (may be None)
        context: Form or action the error came from ("login", "signup", ...)

    Returns:
        The mapped message, or a generic message for the context.
    """
    known = ERROR_MESSAGES.get(context, {})
    if raw is not None and raw.strip() in known:
        return known[raw.strip()]

    logger.warning(f"Unmapped {context} error from backend: {raw!r}")
    return GENERIC_MESSAGES.get(context, DEFAULT_MESSAGE)
