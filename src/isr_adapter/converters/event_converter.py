"""Serverless gateway event converter.

Accepts HTTP API style events (payload format 2.0) and renders results
back into the gateway response mapping. The response is buffered: gateway
events have no streaming channel.
"""

import base64
from collections.abc import AsyncIterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from isr_adapter.entities import InternalRequest, InternalResult, build_headers
from isr_adapter.errors import MalformedRequest, SinkContractViolation
from isr_adapter.protocols import ResponseSink

from .base import write_result

if TYPE_CHECKING:
    from isr_adapter.wrappers.sinks import BufferedStreamSink

_TEXT_TYPES = ("text/", "application/json", "application/xml", "application/javascript", "+json", "+xml")


class EventHttpContext(BaseModel):
    method: str = Field(..., min_length=1, pattern=r"^[A-Za-z]+$")


class EventRequestContext(BaseModel):
    model_config = ConfigDict(extra="allow")

    http: EventHttpContext


class GatewayEvent(BaseModel):
    """Validated shape of an inbound gateway event."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    raw_path: str = Field("/", alias="rawPath")
    raw_query_string: str = Field("", alias="rawQueryString")
    headers: dict[str, str] = Field(default_factory=dict)
    cookies: list[str] = Field(default_factory=list)
    request_context: EventRequestContext = Field(..., alias="requestContext")
    body: str | None = None
    is_base64_encoded: bool = Field(False, alias="isBase64Encoded")


async def _once(data: bytes) -> AsyncIterator[bytes]:
    yield data


def _is_text(content_type: str | None) -> bool:
    if not content_type:
        return False
    content_type = content_type.lower()
    return any(marker in content_type for marker in _TEXT_TYPES)


class EventConverter:
    """Converter between gateway events and the internal model."""

    async def convert_from(self, host_request: Mapping[str, Any]) -> InternalRequest:
        try:
            event = GatewayEvent.model_validate(host_request)
        except ValidationError as e:
            raise MalformedRequest(f"invalid gateway event: {e.error_count()} error(s)") from e

        # Payload 2.0 moves cookies out of the headers into their own list
        headers = [(name, value) for name, value in event.headers.items() if name.lower() != "cookie"]
        cookie = "; ".join(event.cookies) or event.headers.get("cookie")
        if cookie:
            headers.append(("cookie", cookie))

        try:
            header_map = build_headers(headers)
        except UnicodeEncodeError as e:
            raise MalformedRequest("header is not latin-1 encodable") from e

        body = None
        if event.body:
            if event.is_base64_encoded:
                try:
                    data = base64.b64decode(event.body, validate=True)
                except ValueError as e:
                    raise MalformedRequest("body is not valid base64") from e
            else:
                data = event.body.encode("utf-8")
            body = _once(data)

        path = event.raw_path or "/"
        url = f"{path}?{event.raw_query_string}" if event.raw_query_string else path
        return InternalRequest(
            method=event.request_context.http.method.upper(),
            url=url,
            headers=header_map,
            body=body,
        )

    async def convert_to(self, result: InternalResult, sink: ResponseSink) -> None:
        await write_result(result, sink)

    def to_event_response(self, sink: "BufferedStreamSink") -> dict[str, Any]:
        """Render a buffered sink into the gateway response mapping."""
        prelude = sink.prelude
        if prelude is None:
            raise SinkContractViolation("no response was written to the sink")

        headers: dict[str, str] = {}
        cookies: list[str] = []
        for name, value in prelude.headers:
            if name == "set-cookie":
                cookies.append(value)
            elif name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value

        body = sink.body
        if _is_text(headers.get("content-type")):
            try:
                response_body, encoded = body.decode("utf-8"), False
            except UnicodeDecodeError:
                response_body, encoded = base64.b64encode(body).decode("ascii"), True
        else:
            response_body, encoded = base64.b64encode(body).decode("ascii"), bool(body)

        response: dict[str, Any] = {
            "statusCode": prelude.status,
            "headers": headers,
            "body": response_body,
            "isBase64Encoded": encoded,
        }
        if cookies:
            response["cookies"] = cookies
        return response
