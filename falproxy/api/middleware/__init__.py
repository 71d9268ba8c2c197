"""Middleware and exception handlers for the fal proxy API server."""
