"""
Retry controller exceptions.

RetryExhausted is itself transient: the runner treats it like any other
failed attempt and moves on to the next provider in the sequence.
"""

from typing import Optional

from generation_layer.llm.exceptions import TransientBackendError


class RetryExhausted(TransientBackendError):
    """
    Raised when a retryable failure persists after every allowed retry.

    Attributes:
        attempts: Total number of calls made (1 + retries)
        last_error: Final error that caused the give-up
    """

    def __init__(self, attempts: int, last_error: BaseException):
        status = getattr(last_error, "status", None)
        super().__init__(
            f"Retries exhausted after {attempts} attempts. "
            f"Final error: {type(last_error).__name__}: {last_error}",
            status=status if isinstance(status, int) else None,
            details={"last_error_type": type(last_error).__name__},
        )
        self.attempts = attempts
        self.last_error = last_error


class GenerationCancelled(Exception):
    """
    The caller cancelled a generation while it was waiting to retry.

    Never swallowed by the runner: it propagates to the caller.
    """

    def __init__(self, message: str = "Generation cancelled", attempts: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
