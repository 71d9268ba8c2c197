"""Service layer for the fal proxy API server."""

from .fal_client import FalClient, select_endpoint
from .messages import Completion, MessagesService


__all__ = ["Completion", "FalClient", "MessagesService", "select_endpoint"]
