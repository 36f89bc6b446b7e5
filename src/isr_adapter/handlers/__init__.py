"""Handler layer for HTTP endpoints.

Handlers depend on the pipeline, not directly on its backends.

Architecture:
    Handler -> Pipeline -> Backends
    (HTTP)  -> (Policy) -> (Storage / Scheduling)
"""

from .admin_handler import AdminHandler

__all__ = [
    "AdminHandler",
]
