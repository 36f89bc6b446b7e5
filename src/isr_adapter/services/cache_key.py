"""Cache key derivation."""

import posixpath
from collections.abc import Sequence
from urllib.parse import parse_qsl, urlencode

from isr_adapter.entities import InternalRequest


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop a trailing slash ("/" stays "/")."""
    if not path or path == "/":
        return "/"
    normalized = posixpath.normpath("/" + path.lstrip("/"))
    return "/" if normalized in ("", ".") else normalized


class CacheKeyBuilder:
    """Derive a stable cache key from route and variant.

    Key shape: ``<path>[?<sorted query>][|<header>=<value>...]``.

    Example:
        ```python
        keys = CacheKeyBuilder(vary_headers=("x-locale",))
        keys.build(InternalRequest.build("GET", "/blog/a?b=2&a=1", {"X-Locale": "fr"}))
        # "/blog/a?a=1&b=2|x-locale=fr"
        ```
    """

    def __init__(self, vary_query: bool = True, vary_headers: Sequence[str] = ()) -> None:
        self._vary_query = vary_query
        self._vary_headers = tuple(name.lower() for name in vary_headers)

    @property
    def vary_headers(self) -> tuple[str, ...]:
        return self._vary_headers

    def build(self, request: InternalRequest) -> str:
        key = normalize_path(request.path)

        if self._vary_query and request.query_string:
            params = sorted(parse_qsl(request.query_string, keep_blank_values=True))
            if params:
                key = f"{key}?{urlencode(params)}"

        for name, value in self.variant_headers(request).items():
            key = f"{key}|{name}={value}"

        return key

    def variant_headers(self, request: InternalRequest) -> dict[str, str]:
        """Header values that take part in the key, in configured order."""
        variants = {}
        for name in self._vary_headers:
            value = request.headers.get(name)
            if value:
                variants[name] = value
        return variants
