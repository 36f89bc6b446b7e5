"""Internal result domain entities.

A render produces exactly one of two shapes: a complete response held in
memory, or a prelude followed by a body stream.
"""

from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Union

HeaderList = tuple[tuple[str, str], ...]


def normalize_headers(headers: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> HeaderList:
    """Lower-case header names and freeze them into a tuple of pairs."""
    if headers is None:
        return ()
    pairs = headers.items() if isinstance(headers, Mapping) else headers
    return tuple((name.lower(), value) for name, value in pairs)


def merge_headers(headers: HeaderList, overrides: Mapping[str, str]) -> HeaderList:
    """Replace every header named in overrides, keeping the rest in order."""
    names = {name.lower() for name in overrides}
    kept = tuple(pair for pair in headers if pair[0] not in names)
    return kept + normalize_headers(overrides)


@dataclass(frozen=True)
class StreamingResponsePrelude:
    """Status code and headers, sent before any body bytes."""

    status: int
    headers: HeaderList = ()

    def header(self, name: str) -> str | None:
        """Return the first value of a header, or None."""
        name = name.lower()
        for key, value in self.headers:
            if key == name:
                return value
        return None


@dataclass(frozen=True)
class CompleteResponse:
    """A fully buffered response.

    Attributes:
        status: HTTP status code
        headers: Header pairs (lower-case names, repeated names allowed)
        body: Response body
        revalidate: Freshness window override in seconds for this page
    """

    status: int
    headers: HeaderList = ()
    body: bytes = b""
    revalidate: float | None = None

    @property
    def prelude(self) -> StreamingResponsePrelude:
        return StreamingResponsePrelude(status=self.status, headers=self.headers)

    def header(self, name: str) -> str | None:
        return self.prelude.header(name)

    def with_headers(self, overrides: Mapping[str, str]) -> "CompleteResponse":
        return replace(self, headers=merge_headers(self.headers, overrides))


@dataclass(frozen=True)
class StreamedResponse:
    """A prelude followed by a body stream."""

    prelude: StreamingResponsePrelude
    body: AsyncIterator[bytes]

    def with_headers(self, overrides: Mapping[str, str]) -> "StreamedResponse":
        prelude = replace(self.prelude, headers=merge_headers(self.prelude.headers, overrides))
        return replace(self, prelude=prelude)


InternalResult = Union[CompleteResponse, StreamedResponse]


def text_response(status: int, text: str, headers: Mapping[str, str] | None = None) -> CompleteResponse:
    """Build a plain-text complete response."""
    base = {"content-type": "text/plain; charset=utf-8"}
    base.update(headers or {})
    return CompleteResponse(status=status, headers=normalize_headers(base), body=text.encode())
