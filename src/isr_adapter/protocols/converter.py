"""Converter protocol.

Defines the boundary between a host-native request/response
representation and the internal model.
"""

from typing import Protocol, TypeVar, runtime_checkable

from isr_adapter.entities import InternalRequest, InternalResult

from .sink import ResponseSink

HostRequestT = TypeVar("HostRequestT", contravariant=True)


@runtime_checkable
class Converter(Protocol[HostRequestT]):
    """Protocol for request/response converters.

    Example:
        ```python
        converter: Converter[AsgiRequest] = AsgiConverter()
        converter: Converter[Mapping[str, Any]] = EventConverter()
        ```
    """

    async def convert_from(self, host_request: HostRequestT) -> InternalRequest:
        """Normalize a host request.

        Raises:
            MalformedRequest: If the payload cannot be parsed
        """
        ...

    async def convert_to(self, result: InternalResult, sink: ResponseSink) -> None:
        """Write a result onto the host response channel through the sink."""
        ...
