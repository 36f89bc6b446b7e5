"""Dependency injection configuration.

Every backend is chosen here, once, from Settings. Nothing is swapped at
runtime: the selected objects are wired into a Pipeline and stored in
``app.state`` during the lifespan.

Pattern:
    - build_pipeline() constructs and wires all components
    - the lifespan starts/stops the pipeline and publishes it in app.state
    - dependency functions retrieve the admin handler from request.app.state
"""

import secrets
import shlex
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Annotated

import httpx
import structlog
from fastapi import Depends, FastAPI, Request
from uvicorn.importer import import_from_string

from isr_adapter.config import Settings, get_redis_client
from isr_adapter.converters import AsgiConverter
from isr_adapter.entities import InternalRequest, InternalResult, text_response
from isr_adapter.handlers import AdminHandler
from isr_adapter.protocols import IncrementalCache, RenderContext, Renderer
from isr_adapter.queues import DirectRevalidationQueue, HttpRevalidationQueue, TaskRevalidationQueue
from isr_adapter.repositories import (
    FilesystemIncrementalCache,
    MemoryIncrementalCache,
    RedisIncrementalCache,
)
from isr_adapter.services import (
    CacheKeyBuilder,
    FreshnessPolicy,
    LocalProxy,
    Pipeline,
    PipelineOrchestrator,
    SubprocessSideService,
)

log = structlog.get_logger(__name__)


async def not_configured_renderer(request: InternalRequest, context: RenderContext) -> InternalResult:
    """Fallback renderer used when ISR_RENDERER is not set."""
    return text_response(501, "No renderer configured (set ISR_RENDERER)", {"cache-control": "no-store"})


def load_renderer(settings: Settings) -> Renderer:
    """Resolve the renderer named by ``ISR_RENDERER`` ("module:attr")."""
    if not settings.renderer:
        log.warning("pipeline.no_renderer")
        return not_configured_renderer
    return import_from_string(settings.renderer)


CACHE_FACTORIES: dict[str, Callable[[Settings], IncrementalCache]] = {
    "memory": lambda settings: MemoryIncrementalCache(),
    "filesystem": lambda settings: FilesystemIncrementalCache.create(settings.cache_dir),
    "redis": lambda settings: RedisIncrementalCache.create(
        get_redis_client(settings),
        prefix=settings.redis_prefix,
        ttl=settings.cache_ttl,
    ),
}


def build_cache(settings: Settings) -> IncrementalCache:
    return CACHE_FACTORIES[settings.cache_backend](settings)


def build_queue(settings: Settings, token: str, client: httpx.AsyncClient) -> TaskRevalidationQueue:
    if settings.queue_backend == "http":
        return HttpRevalidationQueue.create(
            base_url=settings.revalidate_base_url,
            token=token,
            header=settings.revalidate_header,
            client=client,
        )
    return DirectRevalidationQueue(token=token, header=settings.revalidate_header)


def build_freshness(settings: Settings) -> FreshnessPolicy:
    if settings.routes_manifest:
        return FreshnessPolicy.from_manifest(
            settings.routes_manifest,
            default_window=settings.default_revalidate,
            max_stale=settings.max_stale,
        )
    return FreshnessPolicy(default_window=settings.default_revalidate, max_stale=settings.max_stale)


def build_pipeline(
    settings: Settings,
    renderer: Renderer | None = None,
    cache: IncrementalCache | None = None,
) -> Pipeline:
    """Construct and wire every pipeline component.

    Args:
        settings: Application settings
        renderer: Render function. If None, resolved from settings.
        cache: Cache backend. If None, selected by settings.

    Returns:
        The wired (not yet started) Pipeline
    """
    # Without a configured secret the in-process queue still needs one
    token = settings.revalidate_token or secrets.token_urlsafe(32)
    http_client = httpx.AsyncClient(timeout=settings.http_timeout)

    cache = cache or build_cache(settings)
    queue = build_queue(settings, token, http_client)
    converter = AsgiConverter()

    proxies = []
    side_services = []
    if settings.has_side_service:
        proxies.append(LocalProxy(settings.side_service_prefix, settings.side_service_url, http_client))
        if settings.side_service_cmd:
            side_services.append(
                SubprocessSideService(
                    name="side-service",
                    command=shlex.split(settings.side_service_cmd),
                    client=http_client,
                    health_url=settings.side_service_url,
                )
            )

    orchestrator = PipelineOrchestrator(
        renderer=renderer or load_renderer(settings),
        cache=cache,
        queue=queue,
        converter=converter,
        http_client=http_client,
        revalidate_token=token,
        revalidate_header=settings.revalidate_header,
        freshness=build_freshness(settings),
        key_builder=CacheKeyBuilder(vary_query=settings.vary_query, vary_headers=settings.vary_headers),
        proxies=proxies,
    )
    if isinstance(queue, DirectRevalidationQueue):
        queue.bind(orchestrator.regenerate)

    return Pipeline(
        orchestrator=orchestrator,
        cache=cache,
        queue=queue,
        converter=converter,
        http_client=http_client,
        side_services=side_services,
        cache_backend=settings.cache_backend,
        queue_backend=settings.queue_backend,
    )


def get_admin_handler(request: Request) -> AdminHandler:
    """Dependency injection for AdminHandler from app.state.

    Raises:
        RuntimeError: If the handler is not initialized
    """
    handler = getattr(request.app.state, "admin_handler", None)
    if handler is None:
        raise RuntimeError("AdminHandler not initialized. Check lifespan setup.")
    return handler


def make_lifespan(pipeline: Pipeline) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the lifespan context manager for a wired pipeline."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await pipeline.start()
        app.state.pipeline = pipeline
        app.state.admin_handler = AdminHandler(pipeline=pipeline)

        try:
            yield
        finally:
            del app.state.admin_handler
            del app.state.pipeline
            await pipeline.stop()

    return lifespan


# Type aliases for cleaner dependency injection
AdminHandlerDep = Annotated[AdminHandler, Depends(get_admin_handler)]
