"""Protocol interfaces for swappable implementations.

One capability interface per pipeline component. Implementations satisfy
them structurally and are selected at startup (see api.dependencies).

Usage:
    ```python
    from isr_adapter.protocols import IncrementalCache, RevalidationQueue

    cache: IncrementalCache = RedisIncrementalCache(client)
    queue: RevalidationQueue = HttpRevalidationQueue(...)
    ```
"""

from .converter import Converter
from .incremental_cache import IncrementalCache
from .renderer import RenderContext, Renderer, RequestHandler
from .revalidation_queue import RevalidationQueue
from .sink import ResponseSink
from .wrapper import ShutdownHandle, Wrapper

__all__ = [
    "Converter",
    "IncrementalCache",
    "RenderContext",
    "Renderer",
    "RequestHandler",
    "ResponseSink",
    "RevalidationQueue",
    "ShutdownHandle",
    "Wrapper",
]
