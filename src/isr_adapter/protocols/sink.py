"""Response sink protocol.

The sink is the only way a handler talks back to the transport. It is
single-use: one prelude, any number of body chunks, one finish.
"""

from typing import Protocol, runtime_checkable

from isr_adapter.entities import StreamingResponsePrelude


@runtime_checkable
class ResponseSink(Protocol):
    """Protocol for per-request response sinks.

    Raises ``SinkContractViolation`` when used out of order: a second
    ``write_headers``, a ``write`` before the prelude, or anything after
    ``on_finish``.
    """

    @property
    def headers_sent(self) -> bool:
        """True once the prelude has been written."""
        ...

    @property
    def finished(self) -> bool:
        """True once the response has been terminated."""
        ...

    async def write_headers(self, prelude: StreamingResponsePrelude) -> "ResponseSink":
        """Write status and headers. The status is fixed from here on.

        Returns:
            The body writer (the sink itself for the built-in sinks)
        """
        ...

    async def write(self, chunk: bytes) -> None:
        """Write a body chunk."""
        ...

    async def on_finish(self) -> None:
        """Terminate the response."""
        ...
