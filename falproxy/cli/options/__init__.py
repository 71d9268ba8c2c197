"""Reusable CLI option definitions."""
