"""Utility helpers for the fal proxy API server."""
