"""Tests for response sinks and the request lifecycle."""

import pytest

from isr_adapter.entities import StreamingResponsePrelude
from isr_adapter.errors import ClientDisconnected, SinkContractViolation
from isr_adapter.wrappers import (
    AsgiStreamSink,
    BufferedStreamSink,
    InvalidTransition,
    RequestLifecycle,
    RequestState,
)

OK = StreamingResponsePrelude(200, (("content-type", "text/plain"),))


class TestBufferedStreamSink:
    """Ordering guarantees of GuardedSink."""

    @pytest.mark.asyncio
    async def test_headers_can_be_written_once(self):
        sink = BufferedStreamSink()
        await sink.write_headers(OK)

        with pytest.raises(SinkContractViolation):
            await sink.write_headers(StreamingResponsePrelude(500))
        assert sink.status == 200

    @pytest.mark.asyncio
    async def test_body_before_headers_is_rejected(self):
        with pytest.raises(SinkContractViolation):
            await BufferedStreamSink().write(b"early")

    @pytest.mark.asyncio
    async def test_nothing_after_finish(self):
        sink = BufferedStreamSink()
        writer = await sink.write_headers(OK)
        await writer.write(b"body")
        await writer.on_finish()

        with pytest.raises(SinkContractViolation):
            await sink.write(b"late")
        with pytest.raises(SinkContractViolation):
            await sink.on_finish()
        assert sink.body == b"body"
        assert sink.bytes_written == 4

    @pytest.mark.asyncio
    async def test_abort_finishes_without_end(self):
        sink = BufferedStreamSink()
        await sink.write_headers(OK)
        sink.abort()

        assert sink.finished
        assert sink.aborted


class TestAsgiStreamSink:
    """ASGI message emission."""

    @pytest.mark.asyncio
    async def test_emits_start_body_and_end(self):
        messages = []

        async def send(message):
            messages.append(message)

        sink = AsgiStreamSink(send)
        await sink.write_headers(OK)
        await sink.write(b"hi")
        await sink.on_finish()

        assert messages[0] == {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        }
        assert messages[1] == {"type": "http.response.body", "body": b"hi", "more_body": True}
        assert messages[2] == {"type": "http.response.body", "body": b"", "more_body": False}

    @pytest.mark.asyncio
    async def test_head_only_skips_body(self):
        messages = []

        async def send(message):
            messages.append(message)

        sink = AsgiStreamSink(send, head_only=True)
        await sink.write_headers(OK)
        await sink.write(b"ignored")
        await sink.on_finish()

        assert [m["type"] for m in messages] == ["http.response.start", "http.response.body"]
        assert messages[1]["body"] == b""

    @pytest.mark.asyncio
    async def test_send_error_means_client_disconnected(self):
        async def send(message):
            raise ConnectionResetError("reset by peer")

        sink = AsgiStreamSink(send)

        with pytest.raises(ClientDisconnected):
            await sink.write_headers(OK)
        assert sink.dead
        assert sink.aborted
        await sink.write(b"dropped")
        await sink.on_finish()
        assert sink.bytes_written == 0


class TestRequestLifecycle:
    """Per-request state machine."""

    def test_buffered_path(self):
        lifecycle = RequestLifecycle()
        for state in (RequestState.CONVERTING, RequestState.HANDLING, RequestState.RESPONDING, RequestState.CLOSED):
            lifecycle.advance(state)

        assert lifecycle.closed
        assert lifecycle.history[0] is RequestState.RECEIVED

    def test_closed_is_terminal(self):
        lifecycle = RequestLifecycle()
        lifecycle.advance(RequestState.CLOSED)

        with pytest.raises(InvalidTransition):
            lifecycle.advance(RequestState.CLOSED)

    def test_cannot_stream_before_handling(self):
        lifecycle = RequestLifecycle()
        lifecycle.advance(RequestState.CONVERTING)

        with pytest.raises(InvalidTransition):
            lifecycle.advance(RequestState.STREAMING)
