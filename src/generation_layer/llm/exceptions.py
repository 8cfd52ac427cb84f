"""
Custom exceptions for the model backend layer.

Backends raise one of two families:
- TransientBackendError: rate limit, overload, timeout, network, 429/5xx.
  The retry controller may retry these.
- FatalBackendError: auth, bad request, validation, model not found.
  Never retried; the runner moves on to the next attempt.

Every error may carry the numeric HTTP `status` reported by the provider.
"""

from typing import Any, Optional


class BackendError(Exception):
    """
    Base exception for all model backend errors.

    Attributes:
        message: Human-readable description
        status: HTTP status reported by the provider, if any
        details: Structured context for logging
        attempts: Number of calls made before this error surfaced
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details or {}
        self.attempts = 1

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (status {self.status})"
        return self.message


class TransientBackendError(BackendError):
    """Temporary failure; safe to retry with backoff."""
    pass


class RateLimitError(TransientBackendError):
    """Provider rate-limited the request (HTTP 429)."""
    pass


class BackendTimeoutError(TransientBackendError):
    """Request exceeded the client timeout."""
    pass


class BackendConnectionError(TransientBackendError):
    """Network error reaching the provider (DNS, refused, reset)."""
    pass


class FatalBackendError(BackendError):
    """Permanent failure for this attempt; retrying cannot help."""
    pass


class AuthenticationError(FatalBackendError):
    """Missing or rejected credentials (HTTP 401/403)."""
    pass


class ModelNotAvailableError(FatalBackendError):
    """Requested model is not served by the provider (HTTP 404)."""
    pass


class BackendSchemaViolationError(FatalBackendError):
    """
    Structured output did not conform to the requested JSON Schema.

    Raised for generate_object results, including non-JSON payloads.
    """
    pass
