"""Core infrastructure shared across the proxy."""
