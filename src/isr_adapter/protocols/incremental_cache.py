"""Incremental cache protocol.

Defines the interface for any storage medium that keeps rendered output
together with the time it was written.

Implementations can include:
- In-memory map (default, single process)
- Filesystem (one file per key, write-to-temp-then-rename)
- Redis (single Lua script per write)
- Any other byte-addressable key/value medium
"""

from typing import Protocol, runtime_checkable

from isr_adapter.entities import CacheEntry


@runtime_checkable
class IncrementalCache(Protocol):
    """Protocol for incremental cache backends.

    The cache only records ``last_modified``; deciding whether an entry is
    fresh or stale is the orchestrator's job.

    Example:
        ```python
        from isr_adapter.protocols import IncrementalCache

        cache: IncrementalCache = MemoryIncrementalCache()
        cache: IncrementalCache = FilesystemIncrementalCache("/tmp/isr")
        ```
    """

    async def get(self, key: str) -> CacheEntry:
        """Fetch a stored entry.

        Args:
            key: The cache key

        Returns:
            The stored payload and the timestamp recorded by the medium

        Raises:
            NotFound: If nothing is stored under the key
        """
        ...

    async def set(self, key: str, value: bytes, is_background_fetch: bool = False) -> None:
        """Store a payload, overwriting unconditionally (last writer wins).

        Args:
            key: The cache key
            value: The rendered payload
            is_background_fetch: True when written by a revalidation pass

        Raises:
            CacheWriteFailure: If the medium rejected the write
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete an entry. Deleting a missing key is not an error."""
        ...

    async def count(self) -> int:
        """Count stored entries."""
        ...

    async def health_check(self) -> bool:
        """Check if the medium is reachable."""
        ...

    async def close(self) -> None:
        """Release connections or handles held by the store."""
        ...
