"""API package for the game portal backend."""

from .routes import router

__all__ = ["router"]
