"""HTTP handlers for pipeline administration.

Handlers convert between DTOs (API contracts) and pipeline calls. They
handle HTTP concerns like status codes, token checks and error responses.
"""

from collections.abc import Mapping

from fastapi import HTTPException, status

from isr_adapter.dto import (
    HealthCheckResponse,
    PipelineStatsResponse,
    PurgeRequest,
    PurgeResponse,
    RevalidateRequest,
    RevalidateResponse,
)
from isr_adapter.entities import InternalRequest
from isr_adapter.errors import QueueSendFailure
from isr_adapter.services import Pipeline


class AdminHandler:
    """HTTP handlers for on-demand revalidation, purge, stats and health.

    Mutating operations require the revalidation trust token, the same
    shared secret the revalidation queue uses.

    Example:
        ```python
        handler = AdminHandler(pipeline=pipeline)

        @router.post("/revalidate", response_model=RevalidateResponse)
        async def revalidate(body: RevalidateRequest, request: Request):
            return await handler.revalidate(body, handler.token_from(request.headers))
        ```
    """

    def __init__(self, pipeline: Pipeline) -> None:
        """Initialize the admin handler.

        Args:
            pipeline: The wired pipeline (required).
        """
        self._pipeline = pipeline
        self._orchestrator = pipeline.orchestrator

    def token_from(self, headers: Mapping[str, str]) -> str | None:
        return headers.get(self._orchestrator.revalidate_header)

    def _authorize(self, token: str | None) -> None:
        if not self._orchestrator.verify_token(token):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing or invalid revalidation token",
            )

    async def revalidate(self, request: RevalidateRequest, token: str | None) -> RevalidateResponse:
        """Handle POST /_isr/revalidate requests.

        Raises:
            HTTPException: 401 on a bad token, 503 if the queue refuses the message
        """
        self._authorize(token)
        internal = InternalRequest.build("GET", request.path, request.headers)
        key = self._orchestrator.cache_key(internal)

        if key in self._pipeline.queue.pending:
            return RevalidateResponse(queued=False, key=key, message="Revalidation already in flight")

        try:
            await self._orchestrator.request_revalidation(internal)
        except QueueSendFailure as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Failed to enqueue revalidation: {e.reason}",
            ) from e

        return RevalidateResponse(queued=True, key=key, message="Revalidation queued")

    async def purge(self, request: PurgeRequest, token: str | None) -> PurgeResponse:
        """Handle DELETE /_isr/cache requests."""
        self._authorize(token)
        try:
            key = await self._orchestrator.purge(InternalRequest.build("GET", request.path, request.headers))
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to purge entry: {e}",
            ) from e
        return PurgeResponse(success=True, key=key)

    async def get_stats(self) -> PipelineStatsResponse:
        """Handle GET /_isr/stats requests."""
        try:
            total_entries = await self._pipeline.cache.count()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e

        return PipelineStatsResponse(
            cache_backend=self._pipeline.cache_backend,
            queue_backend=self._pipeline.queue_backend,
            total_entries=total_entries,
            pending_revalidations=sorted(self._pipeline.queue.pending),
            default_revalidate=self._orchestrator.freshness.default_window,
            metrics=self._orchestrator.metrics.to_dict(),
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /_isr/health requests."""
        cache_healthy, services_healthy = await self._pipeline.is_healthy()
        is_healthy = cache_healthy and services_healthy is not False

        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            cache_healthy=cache_healthy,
            side_services_healthy=services_healthy,
        )
