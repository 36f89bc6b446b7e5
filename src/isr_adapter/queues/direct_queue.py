"""In-process revalidation queue.

Regeneration re-enters the render path of the same process: the queue
builds a GET request for the message URL carrying the revalidation trust
header and hands it to the dispatch callable (the orchestrator's
``resolve``), which recognises the header and forces a fresh render.
"""

from collections.abc import Awaitable, Callable

from isr_adapter.entities import InternalRequest, InternalResult, RevalidationMessage, StreamedResponse
from isr_adapter.errors import QueueSendFailure

from .base import TaskRevalidationQueue

Dispatch = Callable[[InternalRequest], Awaitable[InternalResult]]


class DirectRevalidationQueue(TaskRevalidationQueue):
    """Revalidation queue that calls the render path directly.

    Example:
        ```python
        queue = DirectRevalidationQueue(token="s3cret")
        orchestrator = PipelineOrchestrator(..., queue=queue)
        queue.bind(orchestrator.regenerate)
        ```
    """

    backend = "direct"

    def __init__(
        self,
        token: str,
        header: str = "x-isr-revalidate",
        dispatch: Dispatch | None = None,
    ) -> None:
        """Initialize the direct queue.

        Args:
            token: Revalidation trust token attached to every request.
            header: Header carrying the token.
            dispatch: Render path entry point; may be bound later.
        """
        super().__init__()
        self._token = token
        self._header = header
        self._dispatch = dispatch

    def bind(self, dispatch: Dispatch) -> None:
        """Attach the render path once it has been constructed."""
        self._dispatch = dispatch

    async def send(self, message: RevalidationMessage) -> None:
        if self._dispatch is None:
            raise QueueSendFailure(message.key, "no dispatch bound to direct queue")
        await super().send(message)

    async def _deliver(self, message: RevalidationMessage) -> None:
        headers = dict(message.metadata.get("headers") or {})
        headers[self._header] = self._token
        request = InternalRequest.build("GET", message.url, headers)
        result = await self._dispatch(request)

        if isinstance(result, StreamedResponse):
            # Nobody reads this body, but the renderer must run to completion
            async for _ in result.body:
                pass
            status = result.prelude.status
        else:
            status = result.status

        if status >= 500:
            raise QueueSendFailure(message.key, f"render returned status {status}")
