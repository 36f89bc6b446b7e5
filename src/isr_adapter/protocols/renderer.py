"""Render path protocols.

``Renderer`` produces content for a request; it is supplied by the
application. ``RequestHandler`` is what a Wrapper invokes once per request
(the orchestrator is the default one).
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from isr_adapter.entities import InternalRequest, InternalResult

from .sink import ResponseSink


@dataclass(frozen=True)
class RenderContext:
    """Capabilities handed to a renderer for one render.

    Attributes:
        http_client: Shared HTTP client for upstream data fetches
        cache_key: Key the result will be stored under, None if uncacheable
        is_background_fetch: True when rendering for a revalidation pass
    """

    http_client: httpx.AsyncClient
    cache_key: str | None = None
    is_background_fetch: bool = False


@runtime_checkable
class Renderer(Protocol):
    """Application render function."""

    async def __call__(self, request: InternalRequest, context: RenderContext) -> InternalResult:
        ...


@runtime_checkable
class RequestHandler(Protocol):
    """Per-request handler invoked by a Wrapper.

    Must call ``sink.write_headers`` exactly once and then either return or
    call ``sink.on_finish``.
    """

    async def __call__(self, request: InternalRequest, sink: ResponseSink) -> None:
        ...
