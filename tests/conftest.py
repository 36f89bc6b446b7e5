"""Shared fixtures for the pipeline tests."""

import asyncio

import httpx
import pytest

from isr_adapter.converters import AsgiConverter
from isr_adapter.entities import CompleteResponse, InternalRequest, normalize_headers
from isr_adapter.logging_config import clear_context
from isr_adapter.protocols import RenderContext
from isr_adapter.queues import DirectRevalidationQueue
from isr_adapter.repositories import MemoryIncrementalCache
from isr_adapter.services import FreshnessPolicy, PipelineOrchestrator

TOKEN = "s3cret-token"


class FakeClock:
    """Controllable wall clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingRenderer:
    """Renderer that records its calls and numbers every render.

    Background renders wait on ``gate`` when one is set, so tests can hold a
    regeneration in flight.
    """

    def __init__(self, status: int = 200, revalidate: float | None = None, headers: dict | None = None) -> None:
        self.calls: list[tuple[InternalRequest, RenderContext]] = []
        self.status = status
        self.revalidate = revalidate
        self.headers = headers or {"content-type": "text/html; charset=utf-8"}
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    @property
    def background_calls(self) -> list[tuple[InternalRequest, RenderContext]]:
        return [call for call in self.calls if call[1].is_background_fetch]

    async def __call__(self, request: InternalRequest, context: RenderContext) -> CompleteResponse:
        self.calls.append((request, context))
        version = len(self.calls)
        if context.is_background_fetch and self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return CompleteResponse(
            status=self.status,
            headers=normalize_headers(self.headers),
            body=f"{request.path} v{version}".encode(),
            revalidate=self.revalidate,
        )


@pytest.fixture(autouse=True)
def _clean_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
async def http_client():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
    yield client
    await client.aclose()


@pytest.fixture
def make_orchestrator(clock, renderer, http_client):
    """Build an orchestrator over a memory cache and a direct queue."""

    def factory(**overrides) -> PipelineOrchestrator:
        cache = overrides.pop("cache", None) or MemoryIncrementalCache(clock=clock)
        queue = overrides.pop("queue", None) or DirectRevalidationQueue(token=TOKEN)
        options = {
            "renderer": renderer,
            "cache": cache,
            "queue": queue,
            "converter": AsgiConverter(),
            "http_client": http_client,
            "revalidate_token": TOKEN,
            "freshness": FreshnessPolicy(default_window=60),
            "clock": clock,
        }
        options.update(overrides)
        orchestrator = PipelineOrchestrator(**options)
        if isinstance(queue, DirectRevalidationQueue):
            queue.bind(orchestrator.regenerate)
        return orchestrator

    return factory


def get(url: str, headers: dict | None = None) -> InternalRequest:
    return InternalRequest.build("GET", url, headers)
