"""Converters between host-native payloads and the internal model."""

from isr_adapter.protocols import Converter

from .asgi_converter import AsgiConverter, AsgiRequest
from .base import HOP_BY_HOP_HEADERS, write_result
from .event_converter import EventConverter, GatewayEvent

__all__ = [
    "Converter",
    "AsgiConverter",
    "AsgiRequest",
    "EventConverter",
    "GatewayEvent",
    "HOP_BY_HOP_HEADERS",
    "write_result",
]
