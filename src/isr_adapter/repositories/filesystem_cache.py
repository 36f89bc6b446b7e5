"""Filesystem implementation of IncrementalCache.

One file per key. Writes go to a temporary file in the target directory
which is then renamed over the destination, so a reader sees either the old
or the new payload, never a mix. The write timestamp is stored as the
file's mtime and read back from the filesystem. Stamping and renaming
happen under a per-key lock, so within one process the stored timestamp
never goes backwards.
"""

import asyncio
import hashlib
import os
import tempfile
import threading
import time
from collections.abc import Callable
from pathlib import Path

import structlog

from isr_adapter.entities import CacheEntry
from isr_adapter.errors import CacheReadFailure, CacheWriteFailure, NotFound

log = structlog.get_logger(__name__)

_SUFFIX = ".cache"
_LOCK_STRIPES = 64


class FilesystemIncrementalCache:
    """Directory-backed incremental cache.

    Keys are hashed into file names (``<root>/<2 hex>/<sha256>.cache``) so
    arbitrary keys are safe on disk. Blocking I/O runs in worker threads.
    """

    def __init__(self, root: str | os.PathLike[str], clock: Callable[[], float] = time.time) -> None:
        """Initialize the filesystem cache.

        Args:
            root: Directory holding the cache files (created if missing).
            clock: Source of write timestamps (Unix seconds).
        """
        self._root = Path(root)
        self._clock = clock
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]
        self._root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def create(cls, root: str | os.PathLike[str]) -> "FilesystemIncrementalCache":
        """Factory method to create FilesystemIncrementalCache."""
        return cls(root=root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Return the file path that stores a key."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._root / digest[:2] / f"{digest}{_SUFFIX}"

    async def get(self, key: str) -> CacheEntry:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes, is_background_fetch: bool = False) -> None:
        try:
            await asyncio.to_thread(self._write, key, bytes(value))
        except OSError as e:
            raise CacheWriteFailure(key, str(e)) from e
        log.debug(
            "cache.set",
            backend="filesystem",
            key=key,
            size=len(value),
            background=is_background_fetch,
        )

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.path_for(key).unlink, True)
        except OSError as e:
            raise CacheWriteFailure(key, str(e)) from e

    async def count(self) -> int:
        return await asyncio.to_thread(lambda: sum(1 for _ in self._root.glob(f"*/*{_SUFFIX}")))

    async def health_check(self) -> bool:
        return os.access(self._root, os.W_OK)

    async def close(self) -> None:
        return None

    def _read(self, key: str) -> CacheEntry:
        path = self.path_for(key)
        try:
            with open(path, "rb") as fh:
                # fstat on the open handle: payload and mtime belong to the same file
                stat = os.fstat(fh.fileno())
                value = fh.read()
        except FileNotFoundError:
            raise NotFound(key) from None
        except OSError as e:
            raise CacheReadFailure(key, str(e)) from e
        return CacheEntry(value=value, last_modified=stat.st_mtime_ns / 1e9)

    def _lock_for(self, path: Path) -> threading.Lock:
        return self._locks[int(path.stem[:8], 16) % _LOCK_STRIPES]

    def _write(self, key: str, value: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            with self._lock_for(path):
                mtime_ns = int(self._clock() * 1e9)
                try:
                    mtime_ns = max(mtime_ns, path.stat().st_mtime_ns)
                except FileNotFoundError:
                    pass
                os.utime(tmp_name, ns=(mtime_ns, mtime_ns))
                os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
