"""ASGI converter.

Turns an ASGI HTTP scope plus its ``receive`` channel into an
InternalRequest. The request body is not buffered: it is pulled from
``receive`` when the render path reads it.
"""

import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from urllib.parse import quote

from starlette.datastructures import Headers
from starlette.types import Receive, Scope

from isr_adapter.entities import InternalRequest, InternalResult
from isr_adapter.errors import ClientDisconnected, MalformedRequest
from isr_adapter.protocols import ResponseSink

from .base import write_result

_TOKEN = re.compile(rb"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_METHOD = re.compile(r"^[A-Za-z]+$")


@dataclass(frozen=True)
class AsgiRequest:
    """Host-native request for ASGI servers."""

    scope: Scope
    receive: Receive


async def stream_body(receive: Receive) -> AsyncIterator[bytes]:
    """Yield body chunks from an ASGI receive channel."""
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnected("client disconnected while sending the request body")
        if message["type"] != "http.request":
            continue
        chunk = message.get("body", b"")
        if chunk:
            yield chunk
        if not message.get("more_body", False):
            return


class AsgiConverter:
    """Converter between ASGI messages and the internal model.

    This class satisfies the Converter protocol through structural
    typing - no explicit inheritance needed.
    """

    async def convert_from(self, host_request: AsgiRequest) -> InternalRequest:
        scope = host_request.scope
        if scope.get("type") != "http":
            raise MalformedRequest(f"unsupported scope type {scope.get('type')!r}")

        method = scope.get("method")
        if not isinstance(method, str) or not _METHOD.match(method):
            raise MalformedRequest(f"invalid method {method!r}")

        headers = self._headers(scope.get("headers", []))
        url = self._url(scope)

        body = None
        if self._has_body(headers):
            body = stream_body(host_request.receive)

        return InternalRequest(method=method.upper(), url=url, headers=headers, body=body)

    async def convert_to(self, result: InternalResult, sink: ResponseSink) -> None:
        await write_result(result, sink)

    @staticmethod
    def _headers(raw_headers) -> Headers:
        raw = []
        for item in raw_headers:
            try:
                name, value = item
            except (TypeError, ValueError) as e:
                raise MalformedRequest(f"unparseable header entry {item!r}") from e
            if not isinstance(name, bytes) or not isinstance(value, bytes):
                raise MalformedRequest(f"header entry is not bytes: {item!r}")
            if not _TOKEN.match(name) or b"\r" in value or b"\n" in value:
                raise MalformedRequest(f"ill-formed header {name!r}")
            raw.append((name.lower(), value))
        return Headers(raw=raw)

    @staticmethod
    def _url(scope: Scope) -> str:
        raw_path = scope.get("raw_path")
        if isinstance(raw_path, bytes) and raw_path:
            path = raw_path.decode("latin-1")
        else:
            path = quote(scope.get("path") or "/", safe="/:@!$&'()*+,;=-._~%")

        query = scope.get("query_string", b"")
        if isinstance(query, bytes):
            query = query.decode("latin-1")
        return f"{path}?{query}" if query else path

    @staticmethod
    def _has_body(headers: Headers) -> bool:
        if "transfer-encoding" in headers:
            return True
        length = headers.get("content-length")
        if length is None:
            return False
        try:
            return int(length) > 0
        except ValueError as e:
            raise MalformedRequest(f"invalid content-length {length!r}") from e
