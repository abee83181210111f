"""Flask web layer for Budgety."""

from .app import create_app

__all__ = ["create_app"]
