"""Request DTOs for admin endpoints."""

from pydantic import BaseModel, Field


class RevalidateRequest(BaseModel):
    """Request DTO for on-demand revalidation.

    The handler turns the path into a cache key and enqueues a
    regeneration message for it.
    """

    path: str = Field(..., description="Path (and optional query) to regenerate", min_length=1, pattern=r"^/")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Variant headers (e.g. locale) that are part of the cache key",
    )


class PurgeRequest(BaseModel):
    """Request DTO for removing one cache entry."""

    path: str = Field(..., description="Path (and optional query) to purge", min_length=1, pattern=r"^/")
    headers: dict[str, str] = Field(default_factory=dict, description="Variant headers")
