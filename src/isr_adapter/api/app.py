"""FastAPI application.

The admin routes live under ``/_isr``; every other path falls through to
the AsgiWrapper mounted at ``/``, which drives the pipeline orchestrator.
"""

from fastapi import APIRouter, FastAPI, Query, Request

from isr_adapter.config import Settings, get_settings
from isr_adapter.dto import (
    HealthCheckResponse,
    PipelineStatsResponse,
    PurgeRequest,
    PurgeResponse,
    RevalidateRequest,
    RevalidateResponse,
)
from isr_adapter.protocols import Renderer
from isr_adapter.services import Pipeline
from isr_adapter.wrappers import AsgiWrapper

from .dependencies import AdminHandlerDep, build_pipeline, make_lifespan

ADMIN_PREFIX = "/_isr"


def create_router() -> APIRouter:
    router = APIRouter(prefix=ADMIN_PREFIX, tags=["admin"])

    @router.get("/health", response_model=HealthCheckResponse)
    async def health(handler: AdminHandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @router.get("/stats", response_model=PipelineStatsResponse)
    async def stats(handler: AdminHandlerDep) -> PipelineStatsResponse:
        """Cache and revalidation statistics."""
        return await handler.get_stats()

    @router.post("/revalidate", response_model=RevalidateResponse, status_code=202)
    async def revalidate(body: RevalidateRequest, request: Request, handler: AdminHandlerDep) -> RevalidateResponse:
        """Enqueue an on-demand regeneration of one path."""
        return await handler.revalidate(body, handler.token_from(request.headers))

    @router.delete("/cache", response_model=PurgeResponse)
    async def purge(
        request: Request,
        handler: AdminHandlerDep,
        path: str = Query(..., min_length=1, pattern=r"^/"),
    ) -> PurgeResponse:
        """Remove the cache entry of one path."""
        return await handler.purge(PurgeRequest(path=path), handler.token_from(request.headers))

    return router


def create_app(
    settings: Settings | None = None,
    renderer: Renderer | None = None,
    pipeline: Pipeline | None = None,
) -> FastAPI:
    """Create the application.

    Args:
        settings: Application settings. Defaults to environment settings.
        renderer: Render function. Defaults to ``ISR_RENDERER``.
        pipeline: Pre-wired pipeline (tests). Built from settings if None.

    Returns:
        The FastAPI application
    """
    settings = settings or get_settings()
    pipeline = pipeline or build_pipeline(settings, renderer=renderer)

    app = FastAPI(
        title="ISR Adapter",
        description="Request adapter with incremental regeneration caching",
        version="0.1.0",
        lifespan=make_lifespan(pipeline),
        docs_url=f"{ADMIN_PREFIX}/docs",
        openapi_url=f"{ADMIN_PREFIX}/openapi.json",
        redoc_url=None,
    )
    app.include_router(create_router())
    app.mount("/", AsgiWrapper(handler=pipeline.orchestrator, converter=pipeline.converter))
    return app
