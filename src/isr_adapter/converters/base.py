"""Response writing shared by all converters."""

from collections.abc import Collection

from isr_adapter.entities import (
    CompleteResponse,
    HeaderList,
    InternalResult,
    StreamingResponsePrelude,
    merge_headers,
)
from isr_adapter.protocols import ResponseSink

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


def strip_headers(headers: HeaderList, names: Collection[str] = HOP_BY_HOP_HEADERS) -> HeaderList:
    return tuple(pair for pair in headers if pair[0] not in names)


async def write_result(result: InternalResult, sink: ResponseSink) -> None:
    """Write a result through a sink and finish it.

    Complete responses get an exact ``content-length``. Streamed responses
    send their prelude before the first body chunk is pulled, and the body
    iterator is closed even when the sink fails midway.
    """
    if isinstance(result, CompleteResponse):
        headers = merge_headers(strip_headers(result.headers), {"content-length": str(len(result.body))})
        writer = await sink.write_headers(StreamingResponsePrelude(result.status, headers))
        if result.body:
            await writer.write(result.body)
        await writer.on_finish()
        return

    prelude = StreamingResponsePrelude(result.prelude.status, strip_headers(result.prelude.headers))
    writer = await sink.write_headers(prelude)
    try:
        async for chunk in result.body:
            if chunk:
                await writer.write(chunk)
    finally:
        aclose = getattr(result.body, "aclose", None)
        if aclose is not None:
            await aclose()
    await writer.on_finish()
