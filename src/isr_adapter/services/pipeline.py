"""Pipeline container.

Holds the components wired at startup and owns their lifecycle, so every
wrapper (ASGI lifespan, serverless listen) starts and stops them the same
way.
"""

from dataclasses import dataclass, field

import httpx
import structlog

from isr_adapter.protocols import Converter, IncrementalCache, RevalidationQueue

from .orchestrator import PipelineOrchestrator
from .side_service import SideService

log = structlog.get_logger(__name__)


@dataclass
class Pipeline:
    """Wired request pipeline.

    Attributes:
        orchestrator: Request handler invoked by the wrappers
        cache: Incremental cache backend
        queue: Revalidation queue backend
        converter: Converter used by the orchestrator
        http_client: Client shared by renderer, proxies and side services
        side_services: Auxiliary processes started with the pipeline
        cache_backend: Name of the selected cache backend
        queue_backend: Name of the selected queue backend
    """

    orchestrator: PipelineOrchestrator
    cache: IncrementalCache
    queue: RevalidationQueue
    converter: Converter
    http_client: httpx.AsyncClient
    side_services: list[SideService] = field(default_factory=list)
    cache_backend: str = "memory"
    queue_backend: str = "direct"
    _started: bool = field(default=False, init=False, repr=False)
    _stopped: bool = field(default=False, init=False, repr=False)

    @property
    def started(self) -> bool:
        return self._started and not self._stopped

    async def start(self) -> None:
        if self._started:
            return
        for service in self.side_services:
            await service.start()
        self._started = True
        log.info(
            "pipeline.started",
            cache_backend=self.cache_backend,
            queue_backend=self.queue_backend,
            side_services=[service.name for service in self.side_services],
        )

    async def stop(self) -> None:
        """Stop the pipeline. In-flight revalidations finish first."""
        if self._stopped:
            return
        self._stopped = True
        await self.queue.close()
        for service in reversed(self.side_services):
            await service.stop()
        await self.cache.close()
        await self.http_client.aclose()
        log.info("pipeline.stopped")

    async def is_healthy(self) -> tuple[bool, bool | None]:
        """Return (cache healthy, side services healthy or None)."""
        cache_healthy = await self.cache.health_check()
        if not self.side_services:
            return cache_healthy, None
        services_healthy = True
        for service in self.side_services:
            services_healthy = services_healthy and await service.is_healthy()
        return cache_healthy, services_healthy
