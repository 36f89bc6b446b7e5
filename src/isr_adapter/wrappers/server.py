"""Server wrapper owning a uvicorn listener.

``listen`` opens the socket and returns a shutdown handle; stopping is an
explicit call, not a side effect of process exit. Application components
(cache, queue, side services) are started and stopped by the ASGI
lifespan of the served app, which uvicorn runs inside ``serve``.
"""

import asyncio

import structlog
import uvicorn
from starlette.types import ASGIApp

from isr_adapter.errors import ListenerFailure

log = structlog.get_logger(__name__)


class ServerShutdown:
    """Shutdown handle returned by ServerWrapper.listen."""

    def __init__(self, server: uvicorn.Server, task: asyncio.Task[None]) -> None:
        self._server = server
        self._task = task
        self._called = False

    @property
    def stopped(self) -> bool:
        return self._task.done()

    async def wait(self) -> None:
        """Wait until the server stops on its own (e.g. on SIGTERM)."""
        await asyncio.shield(self._task)

    async def __call__(self) -> None:
        if self._called:
            return
        self._called = True
        self._server.should_exit = True
        await self._task
        log.info("server.stopped")


class ServerWrapper:
    """Wrapper listening on a TCP socket through uvicorn.

    Example:
        ```python
        shutdown = await ServerWrapper(app, port=8000).listen()
        ...
        await shutdown()
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        host: str = "127.0.0.1",
        port: int = 8000,
        log_level: str = "info",
    ) -> None:
        self._config = uvicorn.Config(
            app,
            host=host,
            port=port,
            lifespan="auto",
            log_level=log_level.lower(),
            log_config=None,
        )
        self._server = uvicorn.Server(self._config)

    @property
    def server(self) -> uvicorn.Server:
        return self._server

    async def _serve(self) -> None:
        try:
            await self._server.serve()
        except SystemExit as e:
            # uvicorn exits when it cannot bind the socket
            raise ListenerFailure(f"listener exited with code {e.code}") from e

    async def listen(self) -> ServerShutdown:
        """Open the socket and start serving.

        Raises:
            ListenerFailure: If the server stops before it starts accepting
        """
        task = asyncio.create_task(self._serve(), name="isr-server")
        while not self._server.started:
            if task.done():
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()
                raise ListenerFailure("server stopped during startup")
            await asyncio.sleep(0.05)

        log.info("server.listening", host=self._config.host, port=self._config.port)
        return ServerShutdown(self._server, task)
