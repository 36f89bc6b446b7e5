"""Service layer for the request pipeline.

Architecture:
    Wrapper -> Orchestrator -> IncrementalCache / RevalidationQueue / Renderer
    (Ingress) -> (Policy)   -> (Storage / Scheduling / Content)

Usage:
    ```python
    from isr_adapter.services import PipelineOrchestrator, FreshnessPolicy

    orchestrator = PipelineOrchestrator(
        renderer=render_page,
        cache=cache,
        queue=queue,
        converter=converter,
        http_client=client,
        revalidate_token=token,
        freshness=FreshnessPolicy(default_window=60),
    )
    ```
"""

from .cache_key import CacheKeyBuilder, normalize_path
from .freshness import Freshness, FreshnessPolicy, RoutesManifest
from .orchestrator import CACHE_STATUS_HEADER, PipelineOrchestrator
from .pipeline import Pipeline
from .side_service import LocalProxy, SideService, SubprocessSideService

__all__ = [
    "CACHE_STATUS_HEADER",
    "CacheKeyBuilder",
    "Freshness",
    "FreshnessPolicy",
    "LocalProxy",
    "Pipeline",
    "PipelineOrchestrator",
    "RoutesManifest",
    "SideService",
    "SubprocessSideService",
    "normalize_path",
]
