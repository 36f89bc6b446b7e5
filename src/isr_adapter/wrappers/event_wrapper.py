"""Serverless event wrapper.

Entry point for hosts that deliver one request per invocation as an event
mapping and expect the whole response back as a mapping.
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

import structlog

from isr_adapter.converters import EventConverter
from isr_adapter.entities import text_response
from isr_adapter.errors import HandlerFailure, MalformedRequest
from isr_adapter.logging_config import bind_request_context, clear_context
from isr_adapter.protocols import RequestHandler

from .lifecycle import RequestLifecycle, RequestState
from .sinks import BufferedStreamSink

log = structlog.get_logger(__name__)

Hook = Callable[[], Awaitable[None]]


class EventWrapper:
    """Wrapper for gateway-style serverless invocations.

    Example:
        ```python
        wrapper = EventWrapper(handler=orchestrator, on_startup=[pipeline.start])
        shutdown = await wrapper.listen()
        response = await wrapper.handle_event(event)
        await shutdown()
        ```
    """

    def __init__(
        self,
        handler: RequestHandler,
        converter: EventConverter | None = None,
        on_startup: Sequence[Hook] = (),
        on_shutdown: Sequence[Hook] = (),
    ) -> None:
        self._handler = handler
        self._converter = converter or EventConverter()
        self._on_startup = list(on_startup)
        self._on_shutdown = list(on_shutdown)
        self._listening = False

    @property
    def listening(self) -> bool:
        return self._listening

    async def listen(self) -> Callable[[], Awaitable[None]]:
        """Run startup hooks and return the shutdown handle."""
        for hook in self._on_startup:
            await hook()
        self._listening = True
        return self.shutdown

    async def shutdown(self) -> None:
        if not self._listening:
            return
        self._listening = False
        for hook in self._on_shutdown:
            await hook()

    async def handle_event(self, event: Mapping[str, Any]) -> dict[str, Any]:
        """Handle one event and return the gateway response mapping.

        A failure before the prelude becomes a 500 response. A failure after
        it raises HandlerFailure so the host records a failed invocation.
        """
        lifecycle = RequestLifecycle()
        clear_context()
        request_context = event.get("requestContext") if isinstance(event, Mapping) else None
        if isinstance(request_context, Mapping) and request_context.get("requestId"):
            bind_request_context(request_id=str(request_context["requestId"]))

        sink = BufferedStreamSink()
        try:
            lifecycle.advance(RequestState.CONVERTING)
            try:
                request = await self._converter.convert_from(event)
            except MalformedRequest as e:
                log.info("wrapper.malformed_request", error=str(e))
                lifecycle.advance(RequestState.RESPONDING)
                await self._converter.convert_to(text_response(400, "Bad Request"), sink)
                return self._converter.to_event_response(sink)

            lifecycle.advance(RequestState.HANDLING)
            await self._handler(request, sink)
            if not sink.headers_sent:
                raise HandlerFailure("handler returned without writing a response")
            lifecycle.advance(RequestState.RESPONDING)
            if not sink.finished:
                await sink.on_finish()

        except Exception as e:
            log.exception("wrapper.handler_failed", state=lifecycle.state.value, error=str(e))
            if not sink.headers_sent:
                sink = BufferedStreamSink()
                await self._converter.convert_to(text_response(500, "Internal Server Error"), sink)
            else:
                # Status already fixed; a partial body must not pass as complete
                sink.abort()
                raise HandlerFailure("handler failed after the response started") from e
        finally:
            lifecycle.advance(RequestState.CLOSED)

        return self._converter.to_event_response(sink)
