"""Pydantic models for the fal proxy API server."""

from .errors import ErrorDetail, ErrorResponse
from .messages import (
    MessageResponse,
    ModelInfo,
    ModelList,
    TextContentBlock,
    ToolUseContentBlock,
    Usage,
)
from .requests import (
    ContentBlock,
    ImageContent,
    Message,
    MessageCreateParams,
    OtherContent,
    SystemBlock,
    TextContent,
    ToolDefinition,
    ToolResultContent,
    ToolUseContent,
)


__all__ = [
    # Request models
    "ContentBlock",
    "ImageContent",
    "Message",
    "MessageCreateParams",
    "OtherContent",
    "SystemBlock",
    "TextContent",
    "ToolDefinition",
    "ToolResultContent",
    "ToolUseContent",
    # Response models
    "MessageResponse",
    "ModelInfo",
    "ModelList",
    "TextContentBlock",
    "ToolUseContentBlock",
    "Usage",
    # Errors
    "ErrorDetail",
    "ErrorResponse",
]
