"""
Bounded retry with exponential backoff around one backend call.

Policy:
    - Fatal errors (see classifier.is_retryable) are re-raised at once
    - Transient errors are retried up to `max_retries` times
    - Delay before retry N (1-indexed) is base_delay * 2 ** (N - 1)
    - Exhaustion raises RetryExhausted chained to the last error

Usage:
    result = await call_with_retry(
        lambda: backend.generate_text(params),
        max_retries=2,
        base_delay=1.0,
        cancel_token=token,
    )
"""

import time
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from generation_layer.llm.exceptions import BackendError
from generation_layer.monitoring.metrics import retries_total
from generation_layer.retry.cancellation import CancellationToken, interruptible_sleep
from generation_layer.retry.classifier import is_retryable
from generation_layer.retry.exceptions import RetryExhausted

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float, Optional[CancellationToken]], Awaitable[None]]


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retry `attempt` (1-indexed)."""
    return base_delay * (2 ** (attempt - 1))


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 2,
    base_delay: float = 1.0,
    cancel_token: Optional[CancellationToken] = None,
    sleep: Optional[SleepFn] = None,
    label: str = "backend_call",
) -> T:
    """
    Call `operation` until it succeeds, fails fatally, or retries run out.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        max_retries: Retries after the first call (total calls = max_retries + 1)
        base_delay: Delay in seconds before the first retry
        cancel_token: Aborts the backoff wait when cancelled
        sleep: Replacement for the cancellable sleep (tests record delays with it)
        label: Context for log events

    Returns:
        Whatever `operation` returns

    Raises:
        RetryExhausted: Transient failure persisted through every retry
        GenerationCancelled: Token cancelled during a backoff wait
        Exception: The original fatal error, unchanged
    """
    do_sleep = sleep or interruptible_sleep
    start_time = time.time()
    attempt = 0

    while True:
        attempt += 1
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        try:
            result = await operation()
        except Exception as e:
            if not is_retryable(e):
                logger.warning(
                    "Fatal error, not retrying",
                    label=label,
                    attempt=attempt,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                if isinstance(e, BackendError):
                    e.attempts = attempt
                raise

            if attempt > max_retries:
                retries_total.labels(error_type=type(e).__name__, success="false").inc()
                logger.error(
                    "Retries exhausted",
                    label=label,
                    attempts=attempt,
                    elapsed_ms=int((time.time() - start_time) * 1000),
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise RetryExhausted(attempt, e) from e

            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "Transient error, retrying",
                label=label,
                attempt=attempt,
                max_retries=max_retries,
                delay_seconds=delay,
                error_type=type(e).__name__,
                error=str(e),
            )
            await do_sleep(delay, cancel_token)
            continue

        if attempt > 1:
            retries_total.labels(error_type="any", success="true").inc()
            logger.info("Retry succeeded", label=label, attempts=attempt)
        return result
