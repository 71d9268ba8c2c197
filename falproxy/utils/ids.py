"""Identifier generation for messages and tool calls."""

import uuid
from collections.abc import Callable


IdGenerator = Callable[[], str]


def _hex_id() -> str:
    return uuid.uuid4().hex


def new_tool_use_id() -> str:
    """Generate an id for a tool call that arrived without one."""
    return f"toolu_{_hex_id()[:24]}"


def new_message_id() -> str:
    """Generate a message id."""
    return f"msg_{_hex_id()}"


def new_request_id() -> str:
    """Generate a short request id for log correlation."""
    return f"req-{_hex_id()[:16]}"
