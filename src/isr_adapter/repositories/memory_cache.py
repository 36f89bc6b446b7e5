"""In-memory implementation of IncrementalCache.

Entries live in a plain dict shared by every request of the process. Each
write is a single dict assignment with no suspension point in between, so
readers never see a half-written entry.
"""

import time
from collections.abc import Callable

import structlog

from isr_adapter.entities import CacheEntry
from isr_adapter.errors import NotFound

log = structlog.get_logger(__name__)


class MemoryIncrementalCache:
    """Dict-backed incremental cache.

    This class satisfies the IncrementalCache protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory cache.

        Args:
            clock: Source of write timestamps (Unix seconds).
        """
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    async def get(self, key: str) -> CacheEntry:
        try:
            return self._entries[key]
        except KeyError:
            raise NotFound(key) from None

    async def set(self, key: str, value: bytes, is_background_fetch: bool = False) -> None:
        last_modified = self._clock()
        previous = self._entries.get(key)
        if previous is not None and previous.last_modified > last_modified:
            last_modified = previous.last_modified

        self._entries[key] = CacheEntry(value=bytes(value), last_modified=last_modified)
        log.debug(
            "cache.set",
            backend="memory",
            key=key,
            size=len(value),
            background=is_background_fetch,
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def count(self) -> int:
        return len(self._entries)

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()
