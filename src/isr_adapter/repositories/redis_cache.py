"""Redis implementation of IncrementalCache.

Each entry is a hash with ``value`` and ``last_modified`` fields. Writes run
as a single Lua script that takes the timestamp from the Redis server clock,
so every process sharing the store agrees on it and a write is atomic for
readers.
"""

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from isr_adapter.entities import CacheEntry
from isr_adapter.errors import CacheCorruption, CacheReadFailure, CacheWriteFailure, NotFound

log = structlog.get_logger(__name__)

# KEYS[1] = entry key, ARGV[1] = payload, ARGV[2] = ttl seconds (0 = none)
SET_ENTRY_SCRIPT = """
local t = redis.call('TIME')
local now = tonumber(t[1]) + tonumber(t[2]) / 1000000
local prev = redis.call('HGET', KEYS[1], 'last_modified')
if prev then
    prev = tonumber(prev)
    if prev and prev > now then
        now = prev
    end
end
local stamp = string.format('%.6f', now)
redis.call('HSET', KEYS[1], 'value', ARGV[1], 'last_modified', stamp)
local ttl = tonumber(ARGV[2])
if ttl > 0 then
    redis.call('EXPIRE', KEYS[1], ttl)
else
    redis.call('PERSIST', KEYS[1])
end
return stamp
"""


class RedisIncrementalCache:
    """Redis-backed incremental cache.

    This class satisfies the IncrementalCache protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        prefix: str = "isr",
        ttl: int | None = None,
    ) -> None:
        """Initialize the Redis cache.

        Args:
            redis_client: Async Redis client (``decode_responses=False``).
            prefix: Namespace prepended to every key.
            ttl: Optional expiry for entries in seconds.
        """
        self._client = redis_client
        self._prefix = prefix
        self._ttl = ttl or 0
        self._set_entry = redis_client.register_script(SET_ENTRY_SCRIPT)

    @classmethod
    def create(
        cls,
        redis_client: aioredis.Redis,
        prefix: str = "isr",
        ttl: int | None = None,
    ) -> "RedisIncrementalCache":
        """Factory method to create RedisIncrementalCache."""
        return cls(redis_client=redis_client, prefix=prefix, ttl=ttl)

    def _redis_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> CacheEntry:
        try:
            value, last_modified = await self._client.hmget(self._redis_key(key), ["value", "last_modified"])
        except RedisError as e:
            raise CacheReadFailure(key, str(e)) from e
        if value is None:
            raise NotFound(key)

        try:
            stamp = float(last_modified)
        except (TypeError, ValueError) as e:
            raise CacheCorruption(key, f"bad last_modified {last_modified!r}") from e

        return CacheEntry(value=bytes(value), last_modified=stamp)

    async def set(self, key: str, value: bytes, is_background_fetch: bool = False) -> None:
        try:
            stamp = await self._set_entry(keys=[self._redis_key(key)], args=[bytes(value), self._ttl])
        except RedisError as e:
            raise CacheWriteFailure(key, str(e)) from e

        log.debug(
            "cache.set",
            backend="redis",
            key=key,
            size=len(value),
            last_modified=stamp,
            background=is_background_fetch,
        )

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._redis_key(key))
        except RedisError as e:
            raise CacheWriteFailure(key, str(e)) from e

    async def count(self) -> int:
        count = 0
        async for _ in self._client.scan_iter(match=f"{self._prefix}:*"):
            count += 1
        return count

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
