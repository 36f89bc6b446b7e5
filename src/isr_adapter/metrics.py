from dataclasses import dataclass


@dataclass
class PipelineMetrics:
    """Track cache outcomes of the request pipeline."""

    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    stale_hits: int = 0
    expired_hits: int = 0
    revalidations: int = 0
    bypassed: int = 0
    cache_read_failures: int = 0
    cache_write_failures: int = 0
    queue_send_failures: int = 0
    total_resolve_time_ms: float = 0.0

    @property
    def hit_rate(self) -> float:
        """Share of cacheable requests served from the cache (fresh or stale)."""
        lookups = self.cache_hits + self.stale_hits + self.cache_misses + self.expired_hits
        if lookups == 0:
            return 0.0
        return (self.cache_hits + self.stale_hits) / lookups

    @property
    def avg_resolve_time_ms(self) -> float:
        """Calculate average resolve time."""
        if self.total_requests == 0:
            return 0.0
        return self.total_resolve_time_ms / self.total_requests

    def record_request(self, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_resolve_time_ms += duration_ms

    def record_hit(self) -> None:
        self.cache_hits += 1

    def record_miss(self) -> None:
        self.cache_misses += 1

    def record_stale(self) -> None:
        self.stale_hits += 1

    def record_expired(self) -> None:
        self.expired_hits += 1

    def record_revalidation(self) -> None:
        self.revalidations += 1

    def record_bypass(self) -> None:
        self.bypassed += 1

    def record_read_failure(self) -> None:
        self.cache_read_failures += 1

    def record_write_failure(self) -> None:
        self.cache_write_failures += 1

    def record_queue_failure(self) -> None:
        self.queue_send_failures += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "total_requests": self.total_requests,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "stale_hits": self.stale_hits,
            "expired_hits": self.expired_hits,
            "revalidations": self.revalidations,
            "bypassed": self.bypassed,
            "cache_read_failures": self.cache_read_failures,
            "cache_write_failures": self.cache_write_failures,
            "queue_send_failures": self.queue_send_failures,
            "hit_rate": self.hit_rate,
            "avg_resolve_time_ms": self.avg_resolve_time_ms,
        }
