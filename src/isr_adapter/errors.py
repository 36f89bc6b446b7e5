"""Error taxonomy for the request pipeline.

Every failure the pipeline can observe maps to one of these types. Only
``ListenerFailure`` is meant to take the process down; everything else is
handled per request.
"""


class AdapterError(Exception):
    """Base class for all adapter errors."""


class MalformedRequest(AdapterError):
    """The host payload could not be normalized into an InternalRequest."""


class NotFound(AdapterError):
    """Cache miss. Expected, triggers a synchronous render."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No cache entry for key {key!r}")
        self.key = key


class CacheWriteFailure(AdapterError):
    """The storage medium rejected a write."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cache write failed for key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class CacheReadFailure(AdapterError):
    """The storage medium could not be read (outage, I/O error)."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cache read failed for key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class CacheCorruption(AdapterError):
    """A stored payload could not be deserialized."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt cache entry for key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class QueueSendFailure(AdapterError):
    """A revalidation message could not be delivered."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Revalidation send failed for key {key!r}: {reason}")
        self.key = key
        self.reason = reason


class HandlerFailure(AdapterError):
    """The render path raised while handling a request."""


class SinkContractViolation(AdapterError):
    """A response sink was used out of order (e.g. headers written twice)."""


class ClientDisconnected(AdapterError):
    """The host connection went away while the response was being written."""


class ListenerFailure(AdapterError):
    """The listening socket could not be opened or died. Process-fatal."""
