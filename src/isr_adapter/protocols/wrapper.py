"""Wrapper protocol.

A Wrapper owns the ingress of the process (a listening socket, or an event
source) and drives one handler call per inbound request.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ShutdownHandle(Protocol):
    """No-argument operation that stops accepting requests and releases
    the ingress resource."""

    async def __call__(self) -> None:
        ...


@runtime_checkable
class Wrapper(Protocol):
    """Protocol for process/server adapters."""

    async def listen(self) -> ShutdownHandle:
        """Start accepting requests.

        Returns:
            The handle that stops this wrapper

        Raises:
            ListenerFailure: If the ingress cannot be opened
        """
        ...
