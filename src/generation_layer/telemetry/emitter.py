"""
Non-blocking usage telemetry emitter.

emit() never awaits: records go into a bounded asyncio.Queue and a single
background worker appends them to the sink. When the queue is full the
record is dropped with a warning; generation is never slowed down or
failed by telemetry.
"""

import asyncio
from typing import Optional

import structlog

from generation_layer.models.telemetry_models import UsageTelemetry
from generation_layer.monitoring.metrics import telemetry_dropped_total, telemetry_records_total
from generation_layer.telemetry.sinks import UsageSink

logger = structlog.get_logger(__name__)


class TelemetryEmitter:
    """
    Bounded queue + worker task in front of a UsageSink.

    The worker starts lazily on the first emit() inside a running event loop.
    """

    def __init__(self, sink: UsageSink, maxsize: int = 256):
        self.sink = sink
        self.maxsize = maxsize
        self._queue: asyncio.Queue[UsageTelemetry] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    def emit(self, record: UsageTelemetry) -> bool:
        """
        Queue a record without blocking.

        Returns:
            True if queued, False if dropped (queue full)
        """
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            telemetry_dropped_total.inc()
            logger.warning(
                "Telemetry queue full, record dropped",
                command=record.command_name,
                model=record.model_used,
                queue_size=self.maxsize,
            )
            return False

        telemetry_records_total.labels(outcome="queued").inc()
        self._ensure_worker()
        return True

    async def _run(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self.sink.append(record)
                telemetry_records_total.labels(outcome="written").inc()
            except Exception as e:
                telemetry_records_total.labels(outcome="sink_error").inc()
                logger.error(
                    "Failed to write usage telemetry",
                    error_type=type(e).__name__,
                    error=str(e),
                    command=record.command_name,
                )
            finally:
                self._queue.task_done()

    async def flush(self, timeout: float = 5.0) -> bool:
        """
        Wait until every queued record has been handed to the sink.

        Returns:
            False if the timeout expired first
        """
        if self._queue.empty():
            return True
        self._ensure_worker()
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Telemetry flush timed out", pending=self._queue.qsize())
            return False
        return True

    async def aclose(self, timeout: float = 5.0) -> None:
        """Best-effort drain, then stop the worker and close the sink."""
        await self.flush(timeout)
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        await self.sink.close()
        logger.info("Telemetry emitter closed", dropped=self.dropped)
