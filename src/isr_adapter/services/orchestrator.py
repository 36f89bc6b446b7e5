"""Pipeline orchestrator.

Binds the incremental cache, the revalidation queue and the renderer under
one handler call, applying stale-while-revalidate:

    miss          -> render, store, serve              (x-isr-cache: MISS)
    fresh hit     -> serve                             (x-isr-cache: HIT)
    stale hit     -> serve stale copy, enqueue refresh (x-isr-cache: STALE)
    expired hit   -> render, store, serve              (x-isr-cache: MISS)
    trusted regen -> render, store in background mode  (x-isr-cache: REVALIDATED)
"""

import hmac
import time
from dataclasses import replace
from collections.abc import Callable, Collection, Sequence

import httpx
import structlog

from isr_adapter.dto import CachedPage
from isr_adapter.entities import (
    CompleteResponse,
    InternalRequest,
    InternalResult,
    RevalidationMessage,
)
from isr_adapter.errors import (
    CacheCorruption,
    CacheReadFailure,
    CacheWriteFailure,
    HandlerFailure,
    NotFound,
    QueueSendFailure,
)
from isr_adapter.logging_config import bind_request_context
from isr_adapter.metrics import PipelineMetrics
from isr_adapter.protocols import (
    Converter,
    IncrementalCache,
    RenderContext,
    Renderer,
    ResponseSink,
    RevalidationQueue,
)

from .cache_key import CacheKeyBuilder
from .freshness import Freshness, FreshnessPolicy
from .side_service import LocalProxy

log = structlog.get_logger(__name__)

CACHEABLE_METHODS = frozenset({"GET", "HEAD"})
CACHE_STATUS_HEADER = "x-isr-cache"


class PipelineOrchestrator:
    """Request handler applying incremental regeneration.

    Depends on PROTOCOLS only, so every collaborator can be swapped at
    startup:
    - IncrementalCache: memory, filesystem, Redis, ...
    - RevalidationQueue: direct, HTTP, ...
    - Converter: writes the result through the wrapper's sink

    Example:
        ```python
        orchestrator = PipelineOrchestrator(
            renderer=render_page,
            cache=MemoryIncrementalCache(),
            queue=queue,
            converter=AsgiConverter(),
            http_client=httpx.AsyncClient(),
            revalidate_token="s3cret",
        )
        queue.bind(orchestrator.regenerate)
        wrapper = AsgiWrapper(handler=orchestrator)
        ```
    """

    def __init__(
        self,
        renderer: Renderer,
        cache: IncrementalCache,
        queue: RevalidationQueue,
        converter: Converter,
        http_client: httpx.AsyncClient,
        revalidate_token: str | None,
        revalidate_header: str = "x-isr-revalidate",
        freshness: FreshnessPolicy | None = None,
        key_builder: CacheKeyBuilder | None = None,
        proxies: Sequence[LocalProxy] = (),
        cacheable_statuses: Collection[int] = frozenset({200}),
        clock: Callable[[], float] = time.time,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            renderer: Application render function.
            cache: Incremental cache backend.
            queue: Revalidation queue backend.
            converter: Converter used to write results into the sink.
            http_client: Client injected into every RenderContext.
            revalidate_token: Shared secret that marks regeneration requests.
                None disables forced regeneration entirely.
            revalidate_header: Header carrying the token.
            freshness: Freshness policy. Defaults to a 60 second window.
            key_builder: Cache key builder. Defaults to path + sorted query.
            proxies: Local proxies to side services, checked before the cache.
            cacheable_statuses: Statuses whose responses are stored.
            clock: Time source used to compute entry ages.
            metrics: Counters, shared with the admin surface.
        """
        self._renderer = renderer
        self._cache = cache
        self._queue = queue
        self._converter = converter
        self._http_client = http_client
        self._token = revalidate_token
        self._header = revalidate_header.lower()
        self._freshness = freshness or FreshnessPolicy()
        self._keys = key_builder or CacheKeyBuilder()
        self._proxies = list(proxies)
        self._cacheable_statuses = frozenset(cacheable_statuses)
        self._clock = clock
        self.metrics = metrics or PipelineMetrics()

    async def __call__(self, request: InternalRequest, sink: ResponseSink) -> None:
        result = await self.resolve(request)
        await self._converter.convert_to(result, sink)

    async def resolve(self, request: InternalRequest) -> InternalResult:
        """Produce the result for a request, consulting the cache."""
        start_time = time.perf_counter()
        try:
            return await self._resolve(request)
        finally:
            self.metrics.record_request((time.perf_counter() - start_time) * 1000)

    async def regenerate(self, request: InternalRequest) -> InternalResult:
        """Entry point for in-process revalidation.

        Same path as ``resolve`` but not counted as a client request.
        """
        return await self._resolve(request)

    async def _resolve(self, request: InternalRequest) -> InternalResult:
        for proxy in self._proxies:
            if proxy.matches(request):
                self.metrics.record_bypass()
                return await proxy.forward(request)

        if request.method not in CACHEABLE_METHODS:
            self.metrics.record_bypass()
            return await self._render(request, None, background=False)

        key = self._keys.build(request)
        bind_request_context(cache_key=key)

        if request.method == "HEAD":
            # Whatever gets rendered here is stored for GET too
            request = replace(request, method="GET")

        if self.is_revalidation(request):
            return await self._regenerate(request, key)

        try:
            entry = await self._cache.get(key)
            page = CachedPage.decode(key, entry.value)
        except NotFound:
            self.metrics.record_miss()
            return await self._render_and_store(request, key)
        except CacheReadFailure as e:
            self.metrics.record_read_failure()
            log.warning("pipeline.cache_read_failed", key=key, reason=e.reason)
            return await self._render(request, key, background=False)
        except CacheCorruption as e:
            log.warning("pipeline.cache_corrupt", key=key, reason=e.reason)
            await self._discard(key)
            self.metrics.record_miss()
            return await self._render_and_store(request, key)

        window = self._window(request, page.revalidate)
        age = entry.age(self._clock())
        freshness = self._freshness.classify(age, window)

        if freshness is Freshness.FRESH:
            self.metrics.record_hit()
            log.debug("pipeline.hit", key=key, age=round(age, 3))
            return self._decorate(page.to_response(), "HIT", window, age)

        if freshness is Freshness.STALE:
            self.metrics.record_stale()
            log.info("pipeline.stale", key=key, age=round(age, 3), window=window)
            await self._enqueue(request, key)
            return self._decorate(page.to_response(), "STALE", window, age)

        self.metrics.record_expired()
        log.info("pipeline.expired", key=key, age=round(age, 3), window=window)
        return await self._render_and_store(request, key)

    @property
    def revalidate_header(self) -> str:
        return self._header

    @property
    def queue(self) -> RevalidationQueue:
        return self._queue

    @property
    def freshness(self) -> FreshnessPolicy:
        return self._freshness

    def verify_token(self, token: str | None) -> bool:
        """Check a revalidation token in constant time."""
        if not self._token or not token:
            return False
        return hmac.compare_digest(token.encode(), self._token.encode())

    def is_revalidation(self, request: InternalRequest) -> bool:
        """True if the request carries a valid revalidation token.

        A present but wrong token is logged and the request is handled as a
        normal one.
        """
        token = request.headers.get(self._header)
        if token is None:
            return False
        if self.verify_token(token):
            return True
        log.warning("pipeline.revalidation_rejected", path=request.path)
        return False

    def cache_key(self, request: InternalRequest) -> str:
        return self._keys.build(request)

    def revalidation_message(self, request: InternalRequest, key: str, reason: str) -> RevalidationMessage:
        return RevalidationMessage(
            key=key,
            url=request.url,
            metadata={"reason": reason, "headers": self._keys.variant_headers(request)},
        )

    async def request_revalidation(self, request: InternalRequest, reason: str = "on-demand") -> str:
        """Enqueue a regeneration for the resource a request addresses.

        Returns:
            The cache key

        Raises:
            QueueSendFailure: If the queue refused the message
        """
        key = self._keys.build(request)
        await self._queue.send(self.revalidation_message(request, key, reason))
        return key

    async def purge(self, request: InternalRequest) -> str:
        """Delete the cache entry a request addresses and return its key."""
        key = self._keys.build(request)
        await self._cache.delete(key)
        log.info("pipeline.purged", key=key)
        return key

    async def _discard(self, key: str) -> None:
        try:
            await self._cache.delete(key)
        except CacheWriteFailure as e:
            self.metrics.record_write_failure()
            log.warning("pipeline.cache_delete_failed", key=key, reason=e.reason)

    async def _enqueue(self, request: InternalRequest, key: str) -> None:
        try:
            await self._queue.send(self.revalidation_message(request, key, "stale"))
        except QueueSendFailure as e:
            self.metrics.record_queue_failure()
            log.warning("pipeline.queue_send_failed", key=key, reason=e.reason)

    async def _regenerate(self, request: InternalRequest, key: str) -> InternalResult:
        self.metrics.record_revalidation()
        result = await self._render(request, key, background=True)
        if not self._cacheable(result):
            log.info("pipeline.regenerate_skipped", key=key, status=_status(result))
            return result
        await self._store(key, result, background=True)
        return self._decorate(result, "REVALIDATED", self._window(request, result.revalidate), 0.0)

    async def _render_and_store(self, request: InternalRequest, key: str) -> InternalResult:
        result = await self._render(request, key, background=False)
        if not self._cacheable(result):
            return result
        await self._store(key, result, background=False)
        return self._decorate(result, "MISS", self._window(request, result.revalidate), 0.0)

    async def _render(self, request: InternalRequest, key: str | None, background: bool) -> InternalResult:
        context = RenderContext(
            http_client=self._http_client,
            cache_key=key,
            is_background_fetch=background,
        )
        try:
            return await self._renderer(request, context)
        except Exception as e:
            raise HandlerFailure(f"render failed for {request.method} {request.path}: {e}") from e

    async def _store(self, key: str, result: CompleteResponse, background: bool) -> None:
        try:
            await self._cache.set(key, CachedPage.from_response(result).encode(), is_background_fetch=background)
        except CacheWriteFailure as e:
            self.metrics.record_write_failure()
            log.warning("pipeline.cache_write_failed", key=key, reason=e.reason)

    def _cacheable(self, result: InternalResult) -> bool:
        if not isinstance(result, CompleteResponse):
            return False
        if result.status not in self._cacheable_statuses:
            return False
        cache_control = (result.header("cache-control") or "").lower()
        return "no-store" not in cache_control and "private" not in cache_control

    def _window(self, request: InternalRequest, override: float | None) -> float | None:
        if override is not None:
            return override
        return self._freshness.window_for(request.path)

    def _decorate(self, response: CompleteResponse, status: str, window: float | None, age: float) -> CompleteResponse:
        return response.with_headers(
            {
                CACHE_STATUS_HEADER: status,
                "age": str(int(age)),
                "cache-control": self._freshness.cache_control(window, age),
            }
        )


def _status(result: InternalResult) -> int:
    return result.status if isinstance(result, CompleteResponse) else result.prelude.status
