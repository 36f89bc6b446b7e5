"""Revalidation queue implementations.

All of them satisfy the RevalidationQueue protocol and share the per-key
deduplication of TaskRevalidationQueue.
"""

from isr_adapter.protocols import RevalidationQueue

from .base import TaskRevalidationQueue
from .direct_queue import DirectRevalidationQueue
from .http_queue import HttpRevalidationQueue

__all__ = [
    "RevalidationQueue",
    "TaskRevalidationQueue",
    "DirectRevalidationQueue",
    "HttpRevalidationQueue",
]
