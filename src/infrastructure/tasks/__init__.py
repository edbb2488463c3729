"""
Background Tasks
================

Bounded fire-and-forget dispatcher for side effects (notifications, audit
log writes) that must never block or fail the operation that triggered them.

Callers submit a zero-argument coroutine factory and return immediately.
A fixed pool of worker tasks drains the queue; every failure is logged and
swallowed here, never surfaced to the submitter.

Usage:
    dispatcher = BackgroundDispatcher(workers=4, queue_size=1000)
    await dispatcher.start()
    dispatcher.submit(lambda: notifier.send(...), name="status_email", ticket_id=...)
    await dispatcher.stop()
"""

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[Any]]


@dataclass
class _QueuedJob:
    job: Job
    name: str
    context: Dict[str, Any] = field(default_factory=dict)


class BackgroundDispatcher:
    """Asyncio queue served by a fixed number of worker tasks."""

    def __init__(self, workers: int = 4, queue_size: int = 1000):
        self._worker_count = workers
        self._queue: asyncio.Queue[_QueuedJob] = asyncio.Queue(maxsize=queue_size)
        self._workers: List[asyncio.Task] = []
        self._running = False

    async def start(self) -> None:
        """Spawn the worker pool on the running event loop."""
        if self._running:
            logger.warning("Background dispatcher already running")
            return

        self._workers = [
            asyncio.create_task(self._worker(i), name=f"background-worker-{i}")
            for i in range(self._worker_count)
        ]
        self._running = True
        logger.info("Background dispatcher started", extra={"workers": self._worker_count})

    def submit(self, job: Job, name: str, **context: Any) -> bool:
        """
        Enqueue a job without waiting for it.

        Returns:
            True if the job was queued, False if it was dropped
        """
        if not self._running:
            logger.warning(
                "Background dispatcher not running, dropping job",
                extra={"job": name, **context}
            )
            return False

        try:
            self._queue.put_nowait(_QueuedJob(job=job, name=name, context=context))
        except asyncio.QueueFull:
            logger.error(
                "Background queue full, dropping job",
                extra={"job": name, "queue_size": self._queue.maxsize, **context}
            )
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        await self._queue.join()

    async def stop(self, drain: bool = True, timeout: Optional[float] = 10.0) -> None:
        """Stop the workers, by default after draining pending jobs."""
        if not self._running:
            return

        if drain:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Background queue not drained before shutdown",
                    extra={"pending": self._queue.qsize()}
                )

        for worker in self._workers:
            worker.cancel()
        for worker in self._workers:
            with contextlib.suppress(asyncio.CancelledError):
                await worker

        self._workers = []
        self._running = False
        logger.info("Background dispatcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _worker(self, index: int) -> None:
        while True:
            queued = await self._queue.get()
            try:
                await queued.job()
            except Exception as e:
                logger.error(
                    "Background job failed",
                    extra={
                        "job": queued.name,
                        "worker": index,
                        "error": str(e),
                        **queued.context
                    }
                )
            finally:
                self._queue.task_done()
