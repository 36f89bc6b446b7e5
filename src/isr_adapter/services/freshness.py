"""Freshness policy.

The cache only records when an entry was written. This module decides what
that age means for a given route: fresh, stale but servable, or too old to
serve at all.
"""

import fnmatch
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .cache_key import normalize_path

# How long a shared cache may keep serving stale content while revalidating
STALE_WHILE_REVALIDATE = 2592000
# Window advertised for pages that never go stale
IMMUTABLE_MAX_AGE = 31536000


class Freshness(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


class RoutesManifest(BaseModel):
    """Per-route freshness windows, usually emitted by the build.

    ``null`` marks a route whose pages never go stale.
    """

    routes: dict[str, float | None] = Field(default_factory=dict)


class FreshnessPolicy:
    """Resolve freshness windows per route and classify entry ages.

    Routes are matched exactly first, then as ``fnmatch`` patterns, longest
    pattern first. Unmatched routes use the default window.
    """

    def __init__(
        self,
        default_window: float | None = 60.0,
        routes: Mapping[str, float | None] | None = None,
        max_stale: float | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            default_window: Seconds an entry stays fresh (None = forever).
            routes: Route or pattern -> window overrides.
            max_stale: Seconds past the window during which stale content
                may still be served. None = no limit.
        """
        self._default = default_window
        self._max_stale = max_stale
        self._exact: dict[str, float | None] = {}
        self._patterns: list[tuple[str, float | None]] = []
        for route, window in (routes or {}).items():
            if any(char in route for char in "*?["):
                self._patterns.append((route, window))
            else:
                self._exact[normalize_path(route)] = window
        self._patterns.sort(key=lambda item: len(item[0]), reverse=True)

    @classmethod
    def from_manifest(
        cls,
        path: str | Path,
        default_window: float | None = 60.0,
        max_stale: float | None = None,
    ) -> "FreshnessPolicy":
        """Load route windows from a JSON manifest file."""
        manifest = RoutesManifest.model_validate_json(Path(path).read_text(encoding="utf-8"))
        return cls(default_window=default_window, routes=manifest.routes, max_stale=max_stale)

    @property
    def default_window(self) -> float | None:
        return self._default

    def window_for(self, path: str) -> float | None:
        path = normalize_path(path)
        if path in self._exact:
            return self._exact[path]
        for pattern, window in self._patterns:
            if fnmatch.fnmatchcase(path, pattern):
                return window
        return self._default

    def classify(self, age: float, window: float | None) -> Freshness:
        if window is None or age < window:
            return Freshness.FRESH
        if self._max_stale is not None and age >= window + self._max_stale:
            return Freshness.EXPIRED
        return Freshness.STALE

    @staticmethod
    def cache_control(window: float | None, age: float = 0.0) -> str:
        """Cache-Control value for a response served from or into the cache."""
        if window is None:
            return f"s-maxage={IMMUTABLE_MAX_AGE}, stale-while-revalidate={STALE_WHILE_REVALIDATE}"
        remaining = int(window - age)
        if remaining < 1:
            # Stale copy: let shared caches hold it just long enough to revalidate
            remaining = 1
        return f"s-maxage={remaining}, stale-while-revalidate={STALE_WHILE_REVALIDATE}"
