"""HTTP callback revalidation queue.

Regeneration is requested by calling the server (this process or any
worker behind the same base URL) with the revalidation trust header.
"""

import httpx

from isr_adapter.entities import RevalidationMessage
from isr_adapter.errors import QueueSendFailure

from .base import TaskRevalidationQueue


class HttpRevalidationQueue(TaskRevalidationQueue):
    """Revalidation queue delivering messages as HTTP GET callbacks.

    Transport errors and non-2xx/3xx answers are logged as failed
    revalidations; they never fail the request that sent the message.
    """

    backend = "http"

    def __init__(
        self,
        base_url: str,
        token: str,
        header: str = "x-isr-revalidate",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the HTTP queue.

        Args:
            base_url: Origin that serves the render path (e.g. http://127.0.0.1:8000).
            token: Revalidation trust token.
            header: Header carrying the token.
            client: Shared HTTP client. If None, the queue owns one.
            timeout: Timeout for an owned client.
        """
        super().__init__()
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._header = header
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def create(
        cls,
        base_url: str,
        token: str,
        header: str = "x-isr-revalidate",
        client: httpx.AsyncClient | None = None,
    ) -> "HttpRevalidationQueue":
        """Factory method to create HttpRevalidationQueue."""
        return cls(base_url=base_url, token=token, header=header, client=client)

    def url_for(self, message: RevalidationMessage) -> str:
        path = message.url if message.url.startswith("/") else f"/{message.url}"
        return f"{self._base_url}{path}"

    async def _deliver(self, message: RevalidationMessage) -> None:
        headers = dict(message.metadata.get("headers") or {})
        headers[self._header] = self._token
        try:
            response = await self._client.get(self.url_for(message), headers=headers)
        except httpx.HTTPError as e:
            raise QueueSendFailure(message.key, f"transport error: {e}") from e

        if response.status_code >= 400:
            raise QueueSendFailure(message.key, f"callback returned HTTP {response.status_code}")

    async def close(self) -> None:
        await super().close()
        if self._owns_client:
            await self._client.aclose()
