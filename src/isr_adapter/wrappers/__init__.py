"""Wrappers: process/ingress adapters that drive the request handler."""

from isr_adapter.protocols import ShutdownHandle, Wrapper

from .asgi_wrapper import AsgiWrapper
from .event_wrapper import EventWrapper
from .lifecycle import InvalidTransition, RequestLifecycle, RequestState
from .server import ServerShutdown, ServerWrapper
from .sinks import AsgiStreamSink, BufferedStreamSink, GuardedSink

__all__ = [
    "ShutdownHandle",
    "Wrapper",
    "AsgiWrapper",
    "AsgiStreamSink",
    "BufferedStreamSink",
    "EventWrapper",
    "GuardedSink",
    "InvalidTransition",
    "RequestLifecycle",
    "RequestState",
    "ServerShutdown",
    "ServerWrapper",
]
