"""Cooperative cancellation for backoff waits."""

import asyncio
from typing import Optional

import structlog

from generation_layer.retry.exceptions import GenerationCancelled

logger = structlog.get_logger(__name__)


class CancellationToken:
    """
    Caller-owned cancel flag.

    One token may be shared by several concurrent runs; cancelling it wakes
    every backoff sleep currently waiting on it.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled()


async def interruptible_sleep(delay: float, token: Optional[CancellationToken] = None) -> None:
    """
    Sleep for `delay` seconds unless the token is cancelled first.

    Raises:
        GenerationCancelled: Token cancelled before or during the wait
    """
    if token is None:
        await asyncio.sleep(delay)
        return

    token.raise_if_cancelled()
    try:
        await asyncio.wait_for(token.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    logger.info("Backoff interrupted by cancellation", delay_seconds=delay)
    raise GenerationCancelled()
