"""Command line interface for the fal proxy API server."""

from .main import app, main


__all__ = ["app", "main"]
