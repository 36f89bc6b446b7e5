"""Response DTOs for admin endpoints."""

from pydantic import BaseModel, Field


class RevalidateResponse(BaseModel):
    """Response DTO for on-demand revalidation."""

    queued: bool = Field(..., description="Whether a regeneration was enqueued")
    key: str = Field(..., description="Cache key of the resource")
    message: str = Field(..., description="Human-readable status message")


class PurgeResponse(BaseModel):
    """Response DTO for cache purge."""

    success: bool = Field(..., description="Whether the operation succeeded")
    key: str = Field(..., description="Cache key that was removed")


class PipelineStatsResponse(BaseModel):
    """Response DTO for pipeline statistics."""

    cache_backend: str = Field(..., description="Incremental cache implementation")
    queue_backend: str = Field(..., description="Revalidation queue implementation")
    total_entries: int = Field(..., description="Entries in the incremental cache", ge=0)
    pending_revalidations: list[str] = Field(
        default_factory=list,
        description="Keys with a regeneration in flight",
    )
    default_revalidate: float | None = Field(None, description="Default freshness window in seconds")
    metrics: dict[str, float | int] = Field(default_factory=dict, description="Pipeline counters")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    side_services_healthy: bool | None = Field(
        None,
        description="Whether every side service is running (None if there are none)",
    )
