"""Terminal front end for citypulse."""

from .app import app

__all__ = ["app"]
