"""Cache entry domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntry:
    """Domain entity for a stored render.

    Attributes:
        value: Opaque rendered payload
        last_modified: Unix timestamp of the write, as recorded by the
            storage medium. Never decreases for a given key.
    """

    value: bytes
    last_modified: float

    def age(self, now: float) -> float:
        """Seconds elapsed since the entry was written (never negative)."""
        return max(0.0, now - self.last_modified)
