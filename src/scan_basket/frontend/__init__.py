"""HTTP API around a scan session."""

from .app import create_app

__all__ = ["create_app"]
