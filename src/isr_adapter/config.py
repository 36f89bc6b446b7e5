import os
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as aioredis
from dotenv import load_dotenv

load_dotenv()

CACHE_BACKENDS = ("memory", "filesystem", "redis")
QUEUE_BACKENDS = ("direct", "http")


def _optional_float(name: str, default: str | None = None) -> float | None:
    raw = os.getenv(name, default)
    if raw is None or raw.strip().lower() in ("", "none", "null"):
        return None
    return float(raw)


def _csv(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Incremental cache
    cache_backend: str = os.getenv("ISR_CACHE_BACKEND", "memory")
    cache_dir: str = os.getenv("ISR_CACHE_DIR", ".isr-cache")
    cache_ttl: int | None = int(os.getenv("ISR_CACHE_TTL", "0")) or None  # 0 = keep forever

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    redis_prefix: str = os.getenv("ISR_REDIS_PREFIX", "isr")

    # Revalidation queue
    queue_backend: str = os.getenv("ISR_QUEUE_BACKEND", "direct")
    revalidate_base_url: str = os.getenv("ISR_REVALIDATE_BASE_URL", "http://127.0.0.1:8000")
    revalidate_token: str | None = os.getenv("ISR_REVALIDATE_TOKEN")
    revalidate_header: str = os.getenv("ISR_REVALIDATE_HEADER", "x-isr-revalidate").lower()

    # Freshness policy
    default_revalidate: float | None = _optional_float("ISR_DEFAULT_REVALIDATE", "60")
    max_stale: float | None = _optional_float("ISR_MAX_STALE")
    routes_manifest: str | None = os.getenv("ISR_ROUTES_MANIFEST")

    # Cache key variants
    vary_query: bool = os.getenv("ISR_VARY_QUERY", "true").lower() == "true"
    vary_headers: tuple[str, ...] = _csv("ISR_VARY_HEADERS")

    # Render path
    renderer: str | None = os.getenv("ISR_RENDERER")  # "package.module:attr"
    http_timeout: float = float(os.getenv("ISR_HTTP_TIMEOUT", "30"))

    # Side service (e.g. an image proxy), reached through a local proxy
    side_service_cmd: str | None = os.getenv("ISR_SIDE_SERVICE_CMD")
    side_service_url: str | None = os.getenv("ISR_SIDE_SERVICE_URL")
    side_service_prefix: str = os.getenv("ISR_SIDE_SERVICE_PREFIX", "/_image")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "false").lower() == "true"

    @property
    def has_side_service(self) -> bool:
        """Check if an auxiliary side service is configured."""
        return bool(self.side_service_url)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_backend not in CACHE_BACKENDS:
            raise ValueError(
                f"ISR_CACHE_BACKEND must be one of {list(CACHE_BACKENDS)}, got {self.cache_backend!r}"
            )

        if self.queue_backend not in QUEUE_BACKENDS:
            raise ValueError(
                f"ISR_QUEUE_BACKEND must be one of {list(QUEUE_BACKENDS)}, got {self.queue_backend!r}"
            )

        if self.default_revalidate is not None and self.default_revalidate < 0:
            raise ValueError("ISR_DEFAULT_REVALIDATE must be >= 0")

        if self.max_stale is not None and self.max_stale < 0:
            raise ValueError("ISR_MAX_STALE must be >= 0")

        if self.queue_backend == "http" and not self.revalidate_token:
            raise ValueError("ISR_QUEUE_BACKEND=http requires ISR_REVALIDATE_TOKEN")

        if self.side_service_cmd and not self.side_service_url:
            raise ValueError("ISR_SIDE_SERVICE_CMD requires ISR_SIDE_SERVICE_URL")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_redis_client(settings: Settings) -> aioredis.Redis:
    """Create an async Redis client instance."""
    return aioredis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=False,
    )
