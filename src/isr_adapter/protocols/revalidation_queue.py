"""Revalidation queue protocol.

Defines the interface for anything that can trigger background
regeneration of a stale cache entry.

Implementations can include:
- Direct in-process re-invocation of the render path (default)
- HTTP callback to a (possibly different) worker
- A message broker
"""

from typing import Protocol, runtime_checkable

from isr_adapter.entities import RevalidationMessage


@runtime_checkable
class RevalidationQueue(Protocol):
    """Protocol for revalidation queues.

    ``send`` is fire-and-forget from the caller's point of view: it returns
    once the message is accepted, and the regeneration it triggers runs as an
    independent task. While a key is in flight, further messages for the
    same key collapse into the outstanding one.
    """

    async def send(self, message: RevalidationMessage) -> None:
        """Enqueue a regeneration request.

        Args:
            message: What to regenerate

        Raises:
            QueueSendFailure: If the message could not be accepted
        """
        ...

    @property
    def pending(self) -> frozenset[str]:
        """Keys with a regeneration currently in flight."""
        ...

    async def drain(self) -> None:
        """Wait until every in-flight regeneration has finished."""
        ...

    async def close(self) -> None:
        """Stop accepting messages and wait for in-flight work."""
        ...
