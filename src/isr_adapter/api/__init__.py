"""HTTP surface: FastAPI app, admin routes and dependency wiring."""

from .app import create_app
from .dependencies import build_pipeline

__all__ = ["build_pipeline", "create_app"]
