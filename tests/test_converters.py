"""Tests for the ASGI and gateway event converters."""

import base64

import pytest

from isr_adapter.converters import AsgiConverter, AsgiRequest, EventConverter, write_result
from isr_adapter.entities import (
    CompleteResponse,
    StreamedResponse,
    StreamingResponsePrelude,
    normalize_headers,
    text_response,
)
from isr_adapter.errors import ClientDisconnected, MalformedRequest
from isr_adapter.wrappers import BufferedStreamSink


def http_scope(**overrides) -> dict:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/blog/a",
        "raw_path": b"/blog/a",
        "query_string": b"b=2&a=1",
        "headers": [(b"host", b"example.com"), (b"accept", b"text/html"), (b"accept", b"*/*")],
    }
    scope.update(overrides)
    return scope


def receiver(*messages):
    pending = list(messages)

    async def receive():
        return pending.pop(0)

    return receive


class TestAsgiConverter:
    """ASGI scope -> InternalRequest."""

    @pytest.mark.asyncio
    async def test_builds_request_from_scope(self):
        request = await AsgiConverter().convert_from(AsgiRequest(http_scope(), receiver()))

        assert request.method == "GET"
        assert request.url == "/blog/a?b=2&a=1"
        assert request.path == "/blog/a"
        assert request.query_params["a"] == "1"
        assert request.headers["Host"] == "example.com"
        assert request.headers.getlist("accept") == ["text/html", "*/*"]
        assert request.body is None

    @pytest.mark.asyncio
    async def test_body_is_streamed_from_receive(self):
        scope = http_scope(method="POST", headers=[(b"content-length", b"11")])
        receive = receiver(
            {"type": "http.request", "body": b"hello ", "more_body": True},
            {"type": "http.request", "body": b"world", "more_body": False},
        )

        request = await AsgiConverter().convert_from(AsgiRequest(scope, receive))

        assert await request.read_body() == b"hello world"

    @pytest.mark.asyncio
    async def test_disconnect_while_reading_body(self):
        scope = http_scope(method="POST", headers=[(b"transfer-encoding", b"chunked")])
        receive = receiver({"type": "http.disconnect"})

        request = await AsgiConverter().convert_from(AsgiRequest(scope, receive))

        with pytest.raises(ClientDisconnected):
            await request.read_body()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"type": "websocket"},
            {"method": "GE T"},
            {"headers": [(b"bad header", b"x")]},
            {"headers": [(b"x-split", b"a\r\nb")]},
            {"headers": [("str-name", b"x")]},
            {"headers": [(b"content-length", b"eleven")]},
        ],
    )
    async def test_malformed_scopes_are_rejected(self, overrides):
        with pytest.raises(MalformedRequest):
            await AsgiConverter().convert_from(AsgiRequest(http_scope(**overrides), receiver()))


class TestEventConverter:
    """Gateway event <-> internal model."""

    @pytest.fixture
    def event(self):
        return {
            "rawPath": "/api/items",
            "rawQueryString": "page=2",
            "headers": {"Content-Type": "application/json", "X-Locale": "fr"},
            "cookies": ["a=1", "b=2"],
            "requestContext": {"http": {"method": "post"}, "requestId": "abc"},
            "body": base64.b64encode(b'{"x": 1}').decode(),
            "isBase64Encoded": True,
        }

    @pytest.mark.asyncio
    async def test_builds_request_from_event(self, event):
        request = await EventConverter().convert_from(event)

        assert request.method == "POST"
        assert request.url == "/api/items?page=2"
        assert request.headers["x-locale"] == "fr"
        assert request.headers["cookie"] == "a=1; b=2"
        assert await request.read_body() == b'{"x": 1}'

    @pytest.mark.asyncio
    async def test_missing_request_context_is_malformed(self, event):
        del event["requestContext"]

        with pytest.raises(MalformedRequest):
            await EventConverter().convert_from(event)

    @pytest.mark.asyncio
    async def test_bad_base64_body_is_malformed(self, event):
        event["body"] = "%%%"

        with pytest.raises(MalformedRequest):
            await EventConverter().convert_from(event)

    @pytest.mark.asyncio
    async def test_text_response_mapping(self):
        converter = EventConverter()
        sink = BufferedStreamSink()
        response = text_response(200, "héllo").with_headers({"set-cookie": "s=1"})

        await converter.convert_to(response, sink)
        mapping = converter.to_event_response(sink)

        assert mapping["statusCode"] == 200
        assert mapping["body"] == "héllo"
        assert mapping["isBase64Encoded"] is False
        assert mapping["cookies"] == ["s=1"]
        assert "set-cookie" not in mapping["headers"]

    @pytest.mark.asyncio
    async def test_binary_response_is_base64_encoded(self):
        converter = EventConverter()
        sink = BufferedStreamSink()
        png = b"\x89PNG\r\n\x1a\n"

        await converter.convert_to(
            CompleteResponse(status=200, headers=normalize_headers({"content-type": "image/png"}), body=png),
            sink,
        )
        mapping = converter.to_event_response(sink)

        assert mapping["isBase64Encoded"] is True
        assert base64.b64decode(mapping["body"]) == png


class TestWriteResult:
    """Result -> sink writing shared by the converters."""

    @pytest.mark.asyncio
    async def test_complete_response_gets_content_length(self):
        sink = BufferedStreamSink()
        response = CompleteResponse(
            status=201,
            headers=normalize_headers({"transfer-encoding": "chunked", "content-length": "999"}),
            body=b"abc",
        )

        await write_result(response, sink)

        assert sink.status == 201
        assert sink.prelude.header("content-length") == "3"
        assert sink.prelude.header("transfer-encoding") is None
        assert sink.body == b"abc"
        assert sink.finished

    @pytest.mark.asyncio
    async def test_streamed_body_is_closed_when_sink_fails(self):
        closed = []

        async def body():
            try:
                yield b"one"
                yield b"two"
            finally:
                closed.append(True)

        class FailingSink(BufferedStreamSink):
            async def _send_chunk(self, chunk):
                raise ClientDisconnected("gone")

        result = StreamedResponse(StreamingResponsePrelude(200), body())

        with pytest.raises(ClientDisconnected):
            await write_result(result, FailingSink())
        assert closed == [True]
