"""FastAPI integration for receiving Top.gg webhooks."""

from .main import create_app

__all__ = ["create_app"]
