"""Auxiliary side services.

A side service is a separate process (an image proxy, for instance) with a
lifecycle owned by the pipeline: started during startup, stopped by the
same shutdown handle as the listener. Requests reach it through a
LocalProxy mounted on a path prefix.
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

import httpx
import structlog

from isr_adapter.converters import HOP_BY_HOP_HEADERS
from isr_adapter.entities import (
    InternalRequest,
    InternalResult,
    StreamedResponse,
    StreamingResponsePrelude,
    text_response,
)

log = structlog.get_logger(__name__)


@runtime_checkable
class SideService(Protocol):
    """Lifecycle interface of an auxiliary service."""

    name: str

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def is_healthy(self) -> bool:
        ...


class SubprocessSideService:
    """Side service running as a child process.

    ``start`` waits until ``health_url`` answers (any HTTP status) so the
    proxy never forwards to a process that is still booting.
    """

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        client: httpx.AsyncClient,
        health_url: str | None = None,
        startup_timeout: float = 10.0,
        stop_timeout: float = 5.0,
    ) -> None:
        if not command:
            raise ValueError("side service command must not be empty")
        self.name = name
        self._command = list(command)
        self._client = client
        self._health_url = health_url
        self._startup_timeout = startup_timeout
        self._stop_timeout = stop_timeout
        self._process: asyncio.subprocess.Process | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self) -> None:
        if self.running:
            return
        self._process = await asyncio.create_subprocess_exec(*self._command)
        log.info("side_service.started", name=self.name, pid=self._process.pid)
        if self._health_url:
            await self._wait_ready()

    async def _wait_ready(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._startup_timeout
        while loop.time() < deadline:
            if not self.running:
                raise RuntimeError(f"side service {self.name!r} exited during startup")
            try:
                await self._client.get(self._health_url)
                return
            except httpx.TransportError:
                await asyncio.sleep(0.1)
        raise RuntimeError(f"side service {self.name!r} not ready after {self._startup_timeout}s")

    async def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self._stop_timeout)
        except asyncio.TimeoutError:
            log.warning("side_service.kill", name=self.name, pid=process.pid)
            process.kill()
            await process.wait()
        log.info("side_service.stopped", name=self.name, returncode=process.returncode)

    async def is_healthy(self) -> bool:
        return self.running


class LocalProxy:
    """Forward requests under a path prefix to a local upstream.

    The upstream response is streamed back untouched except for hop-by-hop
    headers. Connection failures become a 502.
    """

    def __init__(self, prefix: str, upstream_url: str, client: httpx.AsyncClient) -> None:
        self._prefix = "/" + prefix.strip("/")
        self._upstream = upstream_url.rstrip("/")
        self._client = client

    @property
    def prefix(self) -> str:
        return self._prefix

    def matches(self, request: InternalRequest) -> bool:
        path = request.path
        return path == self._prefix or path.startswith(self._prefix + "/")

    async def forward(self, request: InternalRequest) -> InternalResult:
        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name not in HOP_BY_HOP_HEADERS and name != "host"
        ]
        upstream_request = self._client.build_request(
            request.method,
            f"{self._upstream}{request.url}",
            headers=headers,
            content=request.body,
        )
        try:
            response = await self._client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            log.warning("proxy.upstream_failed", prefix=self._prefix, error=str(e))
            return text_response(502, "Bad Gateway")

        async def body() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_raw():
                    yield chunk
            finally:
                await response.aclose()

        prelude = StreamingResponsePrelude(
            status=response.status_code,
            headers=tuple(
                (name.decode("latin-1").lower(), value.decode("latin-1"))
                for name, value in response.headers.raw
                if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
            ),
        )
        return StreamedResponse(prelude=prelude, body=body())
