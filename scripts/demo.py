#!/usr/bin/env python3
"""
Demo script for the ISR adapter.

Starts the adapter on a local port with a sample renderer and a 2 second
freshness window, then walks one page through MISS -> HIT -> STALE ->
regenerated HIT, and finishes with an on-demand revalidation.

Run with:
    python scripts/demo.py
"""

import asyncio
import time

import httpx

from isr_adapter.api import create_app
from isr_adapter.config import Settings
from isr_adapter.entities import CompleteResponse, InternalRequest, normalize_headers
from isr_adapter.logging_config import configure_logging
from isr_adapter.protocols import RenderContext
from isr_adapter.wrappers import ServerWrapper

HOST = "127.0.0.1"
PORT = 8765
TOKEN = "demo-token"


async def render_page(request: InternalRequest, context: RenderContext) -> CompleteResponse:
    """Sample renderer: a page stamped with its render time."""
    await asyncio.sleep(0.3)  # pretend to fetch data
    rendered_at = time.strftime("%H:%M:%S")
    mode = "background" if context.is_background_fetch else "foreground"
    body = f"<h1>{request.path}</h1><p>rendered at {rendered_at} ({mode})</p>"
    return CompleteResponse(
        status=200,
        headers=normalize_headers({"content-type": "text/html; charset=utf-8"}),
        body=body.encode(),
    )


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def fetch(client: httpx.AsyncClient, path: str) -> None:
    start_time = time.perf_counter()
    response = await client.get(path)
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    print(
        f"  GET {path:<10} {response.status_code} "
        f"x-isr-cache={response.headers.get('x-isr-cache', '-'):<12} "
        f"age={response.headers.get('age', '-'):<3} "
        f"{elapsed_ms:6.1f} ms  {response.text}"
    )


async def main() -> None:
    configure_logging(log_level="WARNING")
    settings = Settings(
        cache_backend="memory",
        queue_backend="direct",
        revalidate_token=TOKEN,
        default_revalidate=2,
        api_host=HOST,
        api_port=PORT,
        log_level="WARNING",
    )
    shutdown = await ServerWrapper(
        create_app(settings, renderer=render_page),
        host=HOST,
        port=PORT,
        log_level="warning",
    ).listen()

    try:
        async with httpx.AsyncClient(base_url=f"http://{HOST}:{PORT}") as client:
            print_section("First request renders (MISS), second is served from cache (HIT)")
            await fetch(client, "/blog/a")
            await fetch(client, "/blog/a")

            print_section("After the window the stale page is served while it regenerates")
            await asyncio.sleep(2.5)
            await fetch(client, "/blog/a")
            await asyncio.sleep(0.5)
            await fetch(client, "/blog/a")

            print_section("On-demand revalidation through the admin API")
            response = await client.post(
                "/_isr/revalidate",
                json={"path": "/blog/a"},
                headers={"x-isr-revalidate": TOKEN},
            )
            print(f"  {response.status_code} {response.json()}")
            await asyncio.sleep(0.5)
            await fetch(client, "/blog/a")

            print_section("Statistics")
            stats = (await client.get("/_isr/stats")).json()
            for name, value in stats["metrics"].items():
                print(f"  {name:<24} {value}")
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
