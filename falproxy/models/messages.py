"""Response models for the Anthropic Messages API endpoint."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


StopReason = Literal["end_turn", "tool_use", "max_tokens", "stop_sequence"]


class Usage(BaseModel):
    """Token usage information."""

    input_tokens: int = Field(0, description="Number of input tokens")
    output_tokens: int = Field(0, description="Number of output tokens")


class TextContentBlock(BaseModel):
    """Text content block."""

    type: Literal["text"] = "text"
    text: str


class ToolUseContentBlock(BaseModel):
    """Tool use content block."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]


MessageContentBlock = Annotated[
    TextContentBlock | ToolUseContentBlock,
    Field(discriminator="type"),
]


class MessageResponse(BaseModel):
    """Response model for the Anthropic Messages API endpoint."""

    id: Annotated[str, Field(description="Unique identifier for the message")]
    type: Annotated[Literal["message"], Field(description="Response type")] = "message"
    role: Annotated[Literal["assistant"], Field(description="Message role")] = (
        "assistant"
    )
    content: Annotated[
        list[MessageContentBlock],
        Field(description="Array of content blocks in the response"),
    ]
    model: Annotated[str, Field(description="The model reported to the client")]
    stop_reason: Annotated[
        StopReason | None, Field(description="Reason why the model stopped generating")
    ] = None
    stop_sequence: Annotated[
        str | None,
        Field(description="The stop sequence that triggered stopping (if applicable)"),
    ] = None
    usage: Annotated[Usage, Field(description="Token usage information")]

    model_config = ConfigDict(extra="forbid")


class ModelInfo(BaseModel):
    """Entry of GET /v1/models."""

    id: str
    type: Literal["model"] = "model"
    display_name: str
    created_at: str


class ModelList(BaseModel):
    """Response of GET /v1/models."""

    data: list[ModelInfo]
    has_more: bool = False
    first_id: str | None = None
    last_id: str | None = None
