"""
Tests for the adapter application: admin routes and the mounted pipeline.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import TOKEN
from isr_adapter.api import build_pipeline, create_app
from isr_adapter.api.dependencies import not_configured_renderer
from isr_adapter.config import Settings
from isr_adapter.repositories import FilesystemIncrementalCache, MemoryIncrementalCache

AUTH = {"x-isr-revalidate": TOKEN}


@pytest.fixture
def settings():
    return Settings(cache_backend="memory", queue_backend="direct", revalidate_token=TOKEN, default_revalidate=60)


@pytest.fixture
def client(settings, renderer):
    """Create a test client with the lifespan running."""
    with TestClient(create_app(settings, renderer=renderer)) as test_client:
        yield test_client


def test_page_is_rendered_then_served_from_cache(client, renderer):
    """First request renders, the second is a cache hit."""
    first = client.get("/blog/a")
    second = client.get("/blog/a")

    assert first.status_code == 200
    assert first.headers["x-isr-cache"] == "MISS"
    assert second.headers["x-isr-cache"] == "HIT"
    assert second.text == first.text == "/blog/a v1"
    assert "x-request-id" in second.headers
    assert len(renderer.calls) == 1


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/_isr/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["cache_healthy"] is True
    assert data["side_services_healthy"] is None


def test_stats(client):
    """Stats reflect the cache and the counters."""
    client.get("/blog/a")
    client.get("/blog/a")

    response = client.get("/_isr/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["cache_backend"] == "memory"
    assert data["queue_backend"] == "direct"
    assert data["total_entries"] == 1
    assert data["default_revalidate"] == 60
    assert data["metrics"]["cache_hits"] == 1
    assert data["metrics"]["cache_misses"] == 1


def test_revalidate_requires_token(client):
    """Test on-demand revalidation without a token."""
    response = client.post("/_isr/revalidate", json={"path": "/blog/a"})
    assert response.status_code == 401

    response = client.post("/_isr/revalidate", json={"path": "/blog/a"}, headers={"x-isr-revalidate": "nope"})
    assert response.status_code == 401


def test_revalidate_queues_regeneration(client):
    """Test on-demand revalidation with a token."""
    response = client.post("/_isr/revalidate", json={"path": "/blog/a?b=1&a=2"}, headers=AUTH)

    assert response.status_code == 202
    data = response.json()
    assert data["key"] == "/blog/a?a=2&b=1"
    assert isinstance(data["queued"], bool)


def test_revalidate_rejects_relative_path(client):
    """Paths must be absolute."""
    response = client.post("/_isr/revalidate", json={"path": "blog"}, headers=AUTH)
    assert response.status_code == 422


def test_purge(client):
    """Purged pages are rendered again."""
    client.get("/blog/a")

    response = client.delete("/_isr/cache", params={"path": "/blog/a"}, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True, "key": "/blog/a"}
    assert client.get("/blog/a").headers["x-isr-cache"] == "MISS"


def test_purge_requires_token(client):
    response = client.delete("/_isr/cache", params={"path": "/blog/a"})
    assert response.status_code == 401


def test_post_bypasses_cache(client, renderer):
    """Non-GET requests go straight to the renderer."""
    response = client.post("/form", content=b"name=x")

    assert response.status_code == 200
    assert "x-isr-cache" not in response.headers
    assert renderer.calls[0][0].method == "POST"


def test_unconfigured_renderer_answers_501(settings):
    """Without ISR_RENDERER every page is a 501."""
    with TestClient(create_app(settings)) as client:
        response = client.get("/anything")
    assert response.status_code == 501


class TestSettings:
    """Settings validation."""

    def test_defaults(self):
        settings = Settings(cache_backend="memory", queue_backend="direct")
        assert settings.revalidate_header == "x-isr-revalidate"
        assert settings.has_side_service is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"cache_backend": "memcached"},
            {"queue_backend": "sqs"},
            {"default_revalidate": -1},
            {"max_stale": -5},
            {"queue_backend": "http", "revalidate_token": None},
            {"side_service_cmd": "imgproxy", "side_service_url": None},
        ],
    )
    def test_invalid_settings_raise(self, overrides):
        options = {"cache_backend": "memory", "queue_backend": "direct"}
        options.update(overrides)
        with pytest.raises(ValueError):
            Settings(**options)


class TestBuildPipeline:
    """Backend selection from settings."""

    @pytest.mark.asyncio
    async def test_memory_backend_with_direct_queue(self, settings):
        pipeline = build_pipeline(settings)

        assert isinstance(pipeline.cache, MemoryIncrementalCache)
        assert pipeline.queue_backend == "direct"
        assert pipeline.side_services == []
        await pipeline.stop()

    @pytest.mark.asyncio
    async def test_filesystem_backend(self, tmp_path):
        settings = Settings(cache_backend="filesystem", cache_dir=str(tmp_path / "isr"), queue_backend="direct")

        pipeline = build_pipeline(settings)

        assert isinstance(pipeline.cache, FilesystemIncrementalCache)
        assert pipeline.cache.root == tmp_path / "isr"
        await pipeline.stop()

    @pytest.mark.asyncio
    async def test_renderer_resolved_from_import_string(self):
        settings = Settings(
            cache_backend="memory",
            queue_backend="direct",
            renderer="isr_adapter.api.dependencies:not_configured_renderer",
        )

        pipeline = build_pipeline(settings)

        assert pipeline.orchestrator._renderer is not_configured_renderer
        await pipeline.stop()

    @pytest.mark.asyncio
    async def test_side_service_proxy_is_mounted(self):
        settings = Settings(
            cache_backend="memory",
            queue_backend="direct",
            side_service_url="http://127.0.0.1:9999",
            side_service_prefix="/_image",
        )

        pipeline = build_pipeline(settings)

        assert [proxy.prefix for proxy in pipeline.orchestrator._proxies] == ["/_image"]
        assert pipeline.side_services == []
        await pipeline.stop()
