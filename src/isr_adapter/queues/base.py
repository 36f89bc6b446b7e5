"""Shared machinery for task-based revalidation queues.

``send`` schedules one asyncio task per key and returns immediately. The
task belongs to the queue, not to the request that discovered staleness, so
a client disconnect never cancels a regeneration. While a key's task is
running, further messages for that key are dropped.
"""

import asyncio
import time

import structlog

from isr_adapter.entities import RevalidationMessage
from isr_adapter.errors import QueueSendFailure

log = structlog.get_logger(__name__)


class TaskRevalidationQueue:
    """Base class for queues that deliver each message in its own task.

    Subclasses implement ``_deliver``; an exception raised there is logged
    and never reaches the request that sent the message.
    """

    backend = "task"

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[None]] = {}
        self._closed = False
        self.delivered = 0
        self.failed = 0
        self.collapsed = 0

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._inflight)

    async def send(self, message: RevalidationMessage) -> None:
        if self._closed:
            raise QueueSendFailure(message.key, "queue is closed")

        if message.key in self._inflight:
            self.collapsed += 1
            log.debug("queue.collapsed", backend=self.backend, key=message.key)
            return

        task = asyncio.create_task(self._run(message), name=f"revalidate:{message.key}")
        self._inflight[message.key] = task
        task.add_done_callback(lambda done, key=message.key: self._forget(key, done))
        log.debug("queue.sent", backend=self.backend, key=message.key, url=message.url)

    def _forget(self, key: str, task: asyncio.Task[None]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _run(self, message: RevalidationMessage) -> None:
        start_time = time.perf_counter()
        try:
            await self._deliver(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            log.warning(
                "queue.revalidation_failed",
                backend=self.backend,
                key=message.key,
                error=str(e),
                error_type=type(e).__name__,
            )
        else:
            self.delivered += 1
            log.info(
                "queue.revalidated",
                backend=self.backend,
                key=message.key,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )

    async def _deliver(self, message: RevalidationMessage) -> None:
        raise NotImplementedError

    async def drain(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def close(self) -> None:
        self._closed = True
        await self.drain()
