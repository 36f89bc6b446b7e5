"""Revalidation message domain entity."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RevalidationMessage:
    """Request to regenerate one cached resource.

    Attributes:
        key: Cache key of the resource (deduplication unit)
        url: URL to re-render, path and query string
        metadata: Opaque extra data carried with the message
    """

    key: str
    url: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
