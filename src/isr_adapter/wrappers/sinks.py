"""Response sinks.

A sink is single-use: the prelude is written once, body chunks follow, and
the response is finished once. ``GuardedSink`` enforces that order; the
subclasses only move bytes.
"""

from collections.abc import Callable

import structlog
from starlette.types import Send

from isr_adapter.entities import StreamingResponsePrelude
from isr_adapter.errors import ClientDisconnected, SinkContractViolation

log = structlog.get_logger(__name__)


class GuardedSink:
    """Base sink enforcing prelude -> body -> finish ordering."""

    def __init__(self) -> None:
        self._prelude: StreamingResponsePrelude | None = None
        self._finished = False
        self._aborted = False
        self.bytes_written = 0

    @property
    def headers_sent(self) -> bool:
        return self._prelude is not None

    @property
    def finished(self) -> bool:
        return self._finished or self._aborted

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def prelude(self) -> StreamingResponsePrelude | None:
        return self._prelude

    @property
    def status(self) -> int | None:
        return self._prelude.status if self._prelude else None

    async def write_headers(self, prelude: StreamingResponsePrelude) -> "GuardedSink":
        if self.finished:
            raise SinkContractViolation("response already finished")
        if self._prelude is not None:
            raise SinkContractViolation(
                f"headers already written with status {self._prelude.status}"
            )
        self._prelude = prelude
        await self._send_prelude(prelude)
        return self

    async def write(self, chunk: bytes) -> None:
        if self._prelude is None:
            raise SinkContractViolation("body written before headers")
        if self.finished:
            raise SinkContractViolation("body written after finish")
        self.bytes_written += len(chunk)
        await self._send_chunk(chunk)

    async def on_finish(self) -> None:
        if self._prelude is None:
            raise SinkContractViolation("finish called before headers")
        if self.finished:
            raise SinkContractViolation("response already finished")
        self._finished = True
        await self._send_end()

    def abort(self) -> None:
        """Terminate without a final write, so the transport reports truncation."""
        self._aborted = True

    async def _send_prelude(self, prelude: StreamingResponsePrelude) -> None:
        raise NotImplementedError

    async def _send_chunk(self, chunk: bytes) -> None:
        raise NotImplementedError

    async def _send_end(self) -> None:
        raise NotImplementedError


class BufferedStreamSink(GuardedSink):
    """Sink collecting the whole response in memory."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: list[bytes] = []

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    async def _send_prelude(self, prelude: StreamingResponsePrelude) -> None:
        return None

    async def _send_chunk(self, chunk: bytes) -> None:
        self._chunks.append(bytes(chunk))

    async def _send_end(self) -> None:
        return None


class AsgiStreamSink(GuardedSink):
    """Sink writing ASGI ``http.response.*`` messages.

    When ``send`` fails because the client went away, the sink marks itself
    dead and raises ClientDisconnected to the writer once. Later writes are
    dropped, so no further message reaches the transport.
    """

    def __init__(
        self,
        send: Send,
        head_only: bool = False,
        on_headers: Callable[[StreamingResponsePrelude], None] | None = None,
    ) -> None:
        super().__init__()
        self._send = send
        self.head_only = head_only
        self._on_headers = on_headers
        self._dead = False

    @property
    def dead(self) -> bool:
        return self._dead

    async def write(self, chunk: bytes) -> None:
        if self._dead:
            return
        await super().write(chunk)

    async def on_finish(self) -> None:
        if self._dead:
            return
        await super().on_finish()

    async def _transmit(self, message: dict) -> None:
        try:
            await self._send(message)
        except OSError as e:
            self._dead = True
            self.abort()
            log.info("sink.client_gone", error=str(e))
            raise ClientDisconnected(str(e)) from e

    async def _send_prelude(self, prelude: StreamingResponsePrelude) -> None:
        if self._on_headers is not None:
            self._on_headers(prelude)
        await self._transmit(
            {
                "type": "http.response.start",
                "status": prelude.status,
                "headers": [
                    (name.encode("latin-1"), value.encode("latin-1")) for name, value in prelude.headers
                ],
            }
        )

    async def _send_chunk(self, chunk: bytes) -> None:
        if self.head_only or not chunk:
            return
        await self._transmit({"type": "http.response.body", "body": bytes(chunk), "more_body": True})

    async def _send_end(self) -> None:
        await self._transmit({"type": "http.response.body", "body": b"", "more_body": False})
