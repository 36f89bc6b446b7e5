"""Repository layer for cache storage.

Incremental cache implementations behind the IncrementalCache protocol.
Any class implementing the required methods satisfies the protocol; no
inheritance is involved.
"""

from isr_adapter.protocols import IncrementalCache

from .filesystem_cache import FilesystemIncrementalCache
from .memory_cache import MemoryIncrementalCache
from .redis_cache import RedisIncrementalCache

__all__ = [
    "IncrementalCache",
    "FilesystemIncrementalCache",
    "MemoryIncrementalCache",
    "RedisIncrementalCache",
]
