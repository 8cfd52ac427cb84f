"""
Retry controller for backend calls.

Main Components:
    - is_retryable: Pure transient/fatal classification
    - call_with_retry: Bounded exponential backoff around one call
    - CancellationToken: Caller-driven abort of backoff waits
    - RetryExhausted: Raised when retries run out (transient)
    - GenerationCancelled: Raised when the caller cancels

Usage:
    >>> from generation_layer.retry import call_with_retry
    >>> result = await call_with_retry(lambda: backend.generate_text(params))
"""

from generation_layer.retry.cancellation import CancellationToken, interruptible_sleep
from generation_layer.retry.classifier import is_retryable
from generation_layer.retry.controller import backoff_delay, call_with_retry
from generation_layer.retry.exceptions import GenerationCancelled, RetryExhausted

__all__ = [
    "CancellationToken",
    "GenerationCancelled",
    "RetryExhausted",
    "backoff_delay",
    "call_with_retry",
    "interruptible_sleep",
    "is_retryable",
]
