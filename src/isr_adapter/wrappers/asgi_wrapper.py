"""ASGI wrapper.

Runs one handler call per HTTP request and guarantees the response is
closed exactly once, whatever the handler does.
"""

import time
import uuid
from collections.abc import Awaitable, Callable, Sequence

import structlog
from starlette.types import Message, Receive, Scope, Send

from isr_adapter.converters import AsgiConverter, AsgiRequest
from isr_adapter.entities import StreamingResponsePrelude, text_response
from isr_adapter.errors import ClientDisconnected, HandlerFailure, MalformedRequest
from isr_adapter.logging_config import bind_request_context, clear_context
from isr_adapter.protocols import RequestHandler

from .lifecycle import RequestLifecycle, RequestState
from .sinks import AsgiStreamSink

log = structlog.get_logger(__name__)

Hook = Callable[[], Awaitable[None]]


class AsgiWrapper:
    """ASGI application driving a RequestHandler.

    Failure handling:
        - MalformedRequest -> 400, the handler is not called
        - handler raises before the prelude -> generic 500
        - handler raises after the prelude -> the response is aborted
          without its final message; the server closes the connection and
          the client sees a truncated body
        - client disconnect -> writing stops, nothing else happens

    Example:
        ```python
        wrapper = AsgiWrapper(handler=orchestrator, converter=AsgiConverter())
        uvicorn.run(wrapper)
        ```
    """

    def __init__(
        self,
        handler: RequestHandler,
        converter: AsgiConverter | None = None,
        on_startup: Sequence[Hook] = (),
        on_shutdown: Sequence[Hook] = (),
    ) -> None:
        """Initialize the wrapper.

        Args:
            handler: Per-request handler (usually the orchestrator).
            converter: ASGI converter. Defaults to AsgiConverter().
            on_startup: Hooks run on ASGI lifespan startup (standalone use).
            on_shutdown: Hooks run on ASGI lifespan shutdown (standalone use).
        """
        self._handler = handler
        self._converter = converter or AsgiConverter()
        self._on_startup = list(on_startup)
        self._on_shutdown = list(on_shutdown)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
        elif scope["type"] == "http":
            await self.handle(scope, receive, send)
        else:
            log.warning("wrapper.unsupported_scope", scope_type=scope["type"])
            if scope["type"] == "websocket":
                await send({"type": "websocket.close", "code": 1003})

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Handle one HTTP request."""
        lifecycle = RequestLifecycle()
        request_id = f"req_{uuid.uuid4().hex[:16]}"
        clear_context()
        bind_request_context(request_id=request_id)
        start_time = time.perf_counter()

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = list(message.get("headers", [])) + [(b"x-request-id", request_id.encode())]
            await send(message)

        def on_headers(prelude: StreamingResponsePrelude) -> None:
            buffered = prelude.header("content-length") is not None
            lifecycle.advance(RequestState.RESPONDING if buffered else RequestState.STREAMING)

        sink = AsgiStreamSink(send_with_request_id, on_headers=on_headers)

        try:
            lifecycle.advance(RequestState.CONVERTING)
            try:
                request = await self._converter.convert_from(AsgiRequest(scope, receive))
            except MalformedRequest as e:
                log.info("wrapper.malformed_request", error=str(e))
                await self._converter.convert_to(text_response(400, "Bad Request"), sink)
                return

            sink.head_only = request.method == "HEAD"
            bind_request_context(method=request.method, path=request.path)
            lifecycle.advance(RequestState.HANDLING)

            await self._handler(request, sink)

            if not sink.headers_sent:
                raise HandlerFailure("handler returned without writing a response")
            if not sink.finished:
                await sink.on_finish()

        except ClientDisconnected:
            log.info("wrapper.client_disconnected", state=lifecycle.state.value)
        except Exception as e:
            log.exception("wrapper.handler_failed", state=lifecycle.state.value, error=str(e))
            await self._fail(sink)
        finally:
            lifecycle.advance(RequestState.CLOSED)
            log.debug(
                "wrapper.closed",
                status=sink.status,
                bytes=sink.bytes_written,
                aborted=sink.aborted,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )

    async def _fail(self, sink: AsgiStreamSink) -> None:
        if sink.dead:
            return
        if sink.headers_sent:
            # The status is on the wire already; only truncation is left
            sink.abort()
            return
        try:
            await self._converter.convert_to(text_response(500, "Internal Server Error"), sink)
        except ClientDisconnected:
            log.info("wrapper.client_disconnected", state="error_response")

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    for hook in self._on_startup:
                        await hook()
                except Exception as e:
                    log.exception("wrapper.startup_failed")
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                for hook in self._on_shutdown:
                    await hook()
                await send({"type": "lifespan.shutdown.complete"})
                return
