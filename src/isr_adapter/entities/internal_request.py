"""Internal request domain entity."""

from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from urllib.parse import urlsplit

from starlette.datastructures import Headers, QueryParams

HeaderInput = Mapping[str, str] | Iterable[tuple[str, str]]


def build_headers(headers: HeaderInput | None) -> Headers:
    """Build an immutable, case-insensitive, multi-valued header mapping.

    Raises:
        UnicodeEncodeError: If a name or value is not latin-1 encodable.
    """
    if headers is None:
        return Headers(raw=[])
    pairs = headers.items() if isinstance(headers, Mapping) else headers
    return Headers(
        raw=[(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in pairs]
    )


@dataclass(frozen=True)
class InternalRequest:
    """Host-independent request handed to the render path.

    Built once by a Converter and never mutated afterwards. The body is a
    one-shot async byte stream, or None when the request carries no body.

    Attributes:
        method: Upper-case HTTP method
        url: Path and query string (absolute URLs are accepted)
        headers: Case-insensitive, multi-valued header mapping
        body: Request body stream, consumed at most once
    """

    method: str
    url: str
    headers: Headers
    body: AsyncIterator[bytes] | None = None

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        headers: HeaderInput | None = None,
        body: AsyncIterator[bytes] | None = None,
    ) -> "InternalRequest":
        """Alternative constructor taking plain header pairs."""
        return cls(method=method.upper(), url=url, headers=build_headers(headers), body=body)

    @property
    def path(self) -> str:
        """URL path, "/" when empty."""
        return urlsplit(self.url).path or "/"

    @property
    def query_string(self) -> str:
        return urlsplit(self.url).query

    @property
    def query_params(self) -> QueryParams:
        return QueryParams(self.query_string)

    async def read_body(self) -> bytes:
        """Drain the body stream into bytes."""
        if self.body is None:
            return b""
        return b"".join([chunk async for chunk in self.body])
