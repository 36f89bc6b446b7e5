"""Data Transfer Objects.

Pydantic models defining external contracts: the admin API and the storage
format of cached pages. Internal logic uses entities from the entities
package.
"""

from .cached_page import CachedPage
from .requests import PurgeRequest, RevalidateRequest
from .responses import (
    HealthCheckResponse,
    PipelineStatsResponse,
    PurgeResponse,
    RevalidateResponse,
)

__all__ = [
    "CachedPage",
    "HealthCheckResponse",
    "PipelineStatsResponse",
    "PurgeRequest",
    "PurgeResponse",
    "RevalidateRequest",
    "RevalidateResponse",
]
