"""Tests for side services, the local proxy and the pipeline container."""

import sys
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import get
from isr_adapter.entities import InternalRequest, StreamedResponse
from isr_adapter.metrics import PipelineMetrics
from isr_adapter.services import LocalProxy, Pipeline, SubprocessSideService


class TestLocalProxy:
    """Forwarding to a side service."""

    @pytest.mark.parametrize(
        "path, expected",
        [("/_image", True), ("/_image/a.png", True), ("/_images", False), ("/blog", False)],
    )
    def test_matches_prefix(self, path, expected):
        proxy = LocalProxy("_image/", "http://127.0.0.1:9000", httpx.AsyncClient())
        assert proxy.matches(get(path)) is expected

    @pytest.mark.asyncio
    async def test_forwards_and_streams_response(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                headers={"content-type": "image/png", "connection": "keep-alive"},
                content=b"PNGDATA",
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            proxy = LocalProxy("/_image", "http://127.0.0.1:9000/", client)
            request = InternalRequest.build("GET", "/_image/a.png?w=64", {"host": "site", "accept": "image/*"})

            result = await proxy.forward(request)
            body = b"".join([chunk async for chunk in result.body])

        assert isinstance(result, StreamedResponse)
        assert str(seen[0].url) == "http://127.0.0.1:9000/_image/a.png?w=64"
        assert seen[0].headers["accept"] == "image/*"
        assert result.prelude.status == 200
        assert result.prelude.header("content-type") == "image/png"
        assert result.prelude.header("connection") is None
        assert body == b"PNGDATA"

    @pytest.mark.asyncio
    async def test_upstream_down_is_502(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await LocalProxy("/_image", "http://127.0.0.1:9", client).forward(get("/_image/x"))

        assert result.status == 502

    @pytest.mark.asyncio
    async def test_orchestrator_routes_prefix_to_proxy(self, make_orchestrator, renderer):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"proxied")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            orchestrator = make_orchestrator(proxies=[LocalProxy("/_image", "http://img", client)])
            result = await orchestrator.resolve(get("/_image/logo.png"))
            body = b"".join([chunk async for chunk in result.body])

        assert body == b"proxied"
        assert renderer.calls == []
        assert orchestrator.metrics.bypassed == 1


class TestSubprocessSideService:
    """Child process lifecycle."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        async with httpx.AsyncClient() as client:
            service = SubprocessSideService(
                name="sleeper",
                command=[sys.executable, "-c", "import time; time.sleep(30)"],
                client=client,
                stop_timeout=5,
            )
            await service.start()
            assert service.running
            assert await service.is_healthy()

            await service.stop()
            assert not service.running
            assert not await service.is_healthy()
            await service.stop()

    def test_empty_command_is_rejected(self):
        with pytest.raises(ValueError):
            SubprocessSideService(name="x", command=[], client=httpx.AsyncClient())


class TestPipeline:
    """Component lifecycle owned by the container."""

    @pytest.fixture
    def pipeline(self):
        cache = AsyncMock()
        cache.health_check.return_value = True
        queue = AsyncMock()
        http_client = AsyncMock()
        return Pipeline(
            orchestrator=AsyncMock(),
            cache=cache,
            queue=queue,
            converter=AsyncMock(),
            http_client=http_client,
        )

    @pytest.mark.asyncio
    async def test_stop_is_idempotent_and_ordered(self, pipeline):
        await pipeline.start()
        assert pipeline.started

        await pipeline.stop()
        await pipeline.stop()

        pipeline.queue.close.assert_awaited_once()
        pipeline.cache.close.assert_awaited_once()
        pipeline.http_client.aclose.assert_awaited_once()
        assert not pipeline.started

    @pytest.mark.asyncio
    async def test_health_includes_side_services(self, pipeline):
        assert await pipeline.is_healthy() == (True, None)

        service = AsyncMock()
        service.name = "img"
        service.is_healthy.return_value = False
        pipeline.side_services.append(service)

        assert await pipeline.is_healthy() == (True, False)


def test_metrics_hit_rate():
    metrics = PipelineMetrics()
    assert metrics.hit_rate == 0.0

    metrics.record_hit()
    metrics.record_stale()
    metrics.record_miss()
    metrics.record_expired()
    metrics.record_request(10.0)
    metrics.record_request(20.0)

    assert metrics.hit_rate == 0.5
    assert metrics.avg_resolve_time_ms == 15.0
    assert metrics.to_dict()["stale_hits"] == 1
