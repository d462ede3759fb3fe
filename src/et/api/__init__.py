"""HTTP surface (FastAPI)."""

from et.api.server import create_app

__all__ = ["create_app"]
