"""Redaction of credential-shaped text in outbound error messages."""

import re
from typing import Any

API_KEY_MARKER = "[API_KEY_REMOVED]"
BEARER_MARKER = "Bearer [TOKEN_REMOVED]"
AUTHORIZATION_MARKER = "authorization: [REMOVED]"
ELLIPSIS = "..."

# Runs of 32+ are matched, only runs longer than 40 are masked.
_KEY_CANDIDATE = re.compile(r"[a-zA-Z0-9]{32,}")
_KEY_MIN_MASKED_LENGTH = 41
_BEARER = re.compile(r"Bearer\s+[a-zA-Z0-9_-]+", re.IGNORECASE)
_AUTHORIZATION = re.compile(r"authorization[:\s]+[^\s]+", re.IGNORECASE)


def _mask_key(match: re.Match) -> str:
    value = match.group(0)
    if len(value) >= _KEY_MIN_MASKED_LENGTH:
        return API_KEY_MARKER
    return value


def sanitize_error(error_text: str, max_length: int = 200) -> str:
    """
    Remove API keys, bearer tokens and authorization headers from text.

    Truncation happens last, on the already redacted string.

    Args:
        error_text: Raw error text
        max_length: Maximum length before the ellipsis marker is appended

    Returns:
        Sanitized text
    """
    if not error_text:
        return ""

    sanitized = _KEY_CANDIDATE.sub(_mask_key, error_text)
    sanitized = _BEARER.sub(BEARER_MARKER, sanitized)
    sanitized = _AUTHORIZATION.sub(AUTHORIZATION_MARKER, sanitized)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + ELLIPSIS

    return sanitized


def sanitize_error_for_response(error: Any, max_length: int = 200) -> str:
    """Sanitize an exception or arbitrary raised value."""
    if isinstance(error, BaseException):
        # Exceptions without a message still say what went wrong
        message = str(error) or type(error).__name__
        return sanitize_error(message, max_length)
    return sanitize_error(str(error), max_length)
