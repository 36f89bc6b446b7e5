"""Run the adapter behind uvicorn: ``python -m isr_adapter``."""

import asyncio

import structlog

from isr_adapter.api import create_app
from isr_adapter.config import Settings, get_settings
from isr_adapter.logging_config import configure_logging
from isr_adapter.wrappers import ServerWrapper

log = structlog.get_logger(__name__)


async def serve(settings: Settings) -> None:
    app = create_app(settings)
    shutdown = await ServerWrapper(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level,
    ).listen()
    try:
        await shutdown.wait()
    finally:
        await shutdown()


def main() -> None:
    settings = get_settings()
    configure_logging(json_logs=settings.log_json, log_level=settings.log_level)
    log.info(
        "app.starting",
        cache_backend=settings.cache_backend,
        queue_backend=settings.queue_backend,
        port=settings.api_port,
    )
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
