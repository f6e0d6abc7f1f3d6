"""Asynchronous audit outbox.

The rotation authority hands events to ``emit()`` after its transaction has
committed. ``emit()`` never blocks and never raises; a background worker
drains the queue into the configured sinks. A sink that keeps failing, or a
full queue, ends with the complete event written to the error log.
"""

import asyncio
from collections.abc import Sequence

from rotauth.core.logging import get_logger
from rotauth.domain.entities import AuditEvent
from rotauth.domain.ports import AuditSink

logger = get_logger(__name__)


class AuditDispatcher:
    """Bounded queue plus a single worker task delivering to every sink."""

    def __init__(
        self,
        sinks: Sequence[AuditSink],
        queue_size: int = 10000,
        max_attempts: int = 3,
        retry_backoff: float = 0.05,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            sinks: Destinations every event is delivered to.
            queue_size: Maximum number of undelivered events.
            max_attempts: Delivery attempts per sink before giving up.
            retry_backoff: Base delay between attempts, in seconds.
        """
        self.sinks = list(sinks)
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff
        self._queue: asyncio.Queue[AuditEvent] = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def emit(self, event: AuditEvent) -> None:
        """Queue an event for delivery."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("Audit queue full, event not delivered", **event.to_dict())

    async def start(self) -> None:
        """Start the background worker."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="rotauth-audit-dispatcher")
        logger.info("Audit dispatcher started", sinks=[sink.name for sink in self.sinks])

    async def flush(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        """Drain the queue (bounded by timeout) and stop the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Audit dispatcher stopped with undelivered events", pending=self.pending)
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Audit dispatcher stopped")

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                for sink in self.sinks:
                    await self._deliver(sink, event)
            finally:
                self._queue.task_done()

    async def _deliver(self, sink: AuditSink, event: AuditEvent) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                await sink.write(event)
                return
            except Exception as e:
                logger.warning(
                    "Audit sink write failed",
                    sink=sink.name,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_backoff * attempt)

        logger.error("Audit event dropped by sink", sink=sink.name, **event.to_dict())
