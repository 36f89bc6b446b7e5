"""ISR Adapter - pluggable request pipeline with incremental regeneration.

Four swappable components compose into one request pipeline:

Components:
    - converters: host request/response <-> internal model (ASGI, gateway events)
    - wrappers: ingress lifecycle and per-request response sinks
    - repositories: incremental cache backends (memory, filesystem, Redis)
    - queues: revalidation queues (direct, HTTP)
    - services: the orchestrator applying stale-while-revalidate

Usage:
    ```python
    from isr_adapter.api import create_app

    app = create_app(renderer=render_page)
    ```
"""

from isr_adapter.config import Settings, get_settings
from isr_adapter.entities import (
    CacheEntry,
    CompleteResponse,
    InternalRequest,
    InternalResult,
    RevalidationMessage,
    StreamedResponse,
    StreamingResponsePrelude,
)
from isr_adapter.protocols import (
    Converter,
    IncrementalCache,
    RenderContext,
    Renderer,
    RequestHandler,
    ResponseSink,
    RevalidationQueue,
    Wrapper,
)
from isr_adapter.services import FreshnessPolicy, Pipeline, PipelineOrchestrator

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    # Protocols (interfaces)
    "Converter",
    "IncrementalCache",
    "Renderer",
    "RequestHandler",
    "ResponseSink",
    "RevalidationQueue",
    "Wrapper",
    # Services
    "FreshnessPolicy",
    "Pipeline",
    "PipelineOrchestrator",
    # Entities
    "CacheEntry",
    "CompleteResponse",
    "InternalRequest",
    "InternalResult",
    "RenderContext",
    "RevalidationMessage",
    "StreamedResponse",
    "StreamingResponsePrelude",
]
