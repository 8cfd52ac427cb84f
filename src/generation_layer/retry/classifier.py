"""
Retryable-error classification.

Decides from an error's message and status alone whether another attempt
could succeed. Providers disagree on exception types, so the predicate
looks at what every provider error has in common: text and, usually, an
HTTP status.
"""

from typing import Any, Optional

RETRYABLE_MESSAGE_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "too many requests",
    "overloaded",
    "unavailable",
    "timeout",
    "timed out",
    "network error",
)


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable(error: Any) -> bool:
    """
    Return True if the error is transient (rate limit, overload, timeout,
    network failure, HTTP 429 or 5xx).

    Total and side-effect free: anything that is not an exception, or that
    carries neither a recognized message nor a retryable status, is fatal.
    """
    if not isinstance(error, BaseException):
        return False

    message = str(error).lower()
    if any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS):
        return True

    status = _status_of(error)
    if status is None:
        return False
    return status == 429 or status >= 500
