"""Domain entities for internal representation.

These are frozen dataclasses used by converters, wrappers, stores, queues
and the orchestrator. They are NOT used for API contracts - use DTOs from
the dto package for that.
"""

from .cache_entry import CacheEntry
from .internal_request import InternalRequest, build_headers
from .internal_result import (
    CompleteResponse,
    HeaderList,
    InternalResult,
    StreamedResponse,
    StreamingResponsePrelude,
    merge_headers,
    normalize_headers,
    text_response,
)
from .revalidation_message import RevalidationMessage

__all__ = [
    "CacheEntry",
    "CompleteResponse",
    "HeaderList",
    "InternalRequest",
    "InternalResult",
    "RevalidationMessage",
    "StreamedResponse",
    "StreamingResponsePrelude",
    "build_headers",
    "merge_headers",
    "normalize_headers",
    "text_response",
]
