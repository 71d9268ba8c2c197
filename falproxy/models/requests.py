"""Request models compatible with Anthropic's Messages API format."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

from falproxy.utils.ids import new_tool_use_id


class TextContent(BaseModel):
    """Text content block for messages."""

    type: Literal["text"] = "text"
    text: str = Field(..., description="The text content")

    model_config = ConfigDict(extra="allow")


class ImageContent(BaseModel):
    """Image content block for multimodal messages.

    The source is kept opaque; images cannot be forwarded to a text-only
    backend and are dropped during prompt compilation.
    """

    type: Literal["image"] = "image"
    source: dict[str, Any] = Field(
        default_factory=dict, description="Image source data (base64 or url)"
    )

    model_config = ConfigDict(extra="allow")


class ToolUseContent(BaseModel):
    """Tool invocation previously made by the assistant."""

    type: Literal["tool_use"] = "tool_use"
    id: str = Field(
        default_factory=new_tool_use_id,
        description="Tool call identifier, synthesized when the caller omits it",
    )
    name: str = Field(..., description="Name of the invoked tool")
    input: dict[str, Any] = Field(
        default_factory=dict, description="Arguments passed to the tool"
    )

    model_config = ConfigDict(extra="allow")

    @field_validator("id")
    @classmethod
    def synthesize_empty_id(cls, v: str) -> str:
        return v or new_tool_use_id()


class ToolResultContent(BaseModel):
    """Result of a tool invocation supplied by the client."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str = Field(default="", description="Id of the originating tool_use")
    content: Any = Field(
        default="", description="Result payload: a string or a list of blocks"
    )
    is_error: bool | None = None

    model_config = ConfigDict(extra="allow")


class OtherContent(BaseModel):
    """Any content block type the proxy does not interpret (e.g. documents)."""

    type: str

    model_config = ConfigDict(extra="allow")


_KNOWN_BLOCK_TYPES = frozenset({"text", "image", "tool_use", "tool_result"})


def _content_block_tag(value: Any) -> str:
    if isinstance(value, dict):
        block_type = value.get("type")
    else:
        block_type = getattr(value, "type", None)
    return block_type if block_type in _KNOWN_BLOCK_TYPES else "other"


ContentBlock = Annotated[
    Annotated[TextContent, Tag("text")]
    | Annotated[ImageContent, Tag("image")]
    | Annotated[ToolUseContent, Tag("tool_use")]
    | Annotated[ToolResultContent, Tag("tool_result")]
    | Annotated[OtherContent, Tag("other")],
    Discriminator(_content_block_tag),
]

MessageContent = str | list[ContentBlock]

Role = Literal["system", "developer", "user", "assistant"]


class Message(BaseModel):
    """Individual message in the conversation."""

    role: Role = Field(..., description="The role of the message sender")
    content: MessageContent = Field(
        default="", description="The content of the message"
    )


class SystemBlock(BaseModel):
    """Top-level system prompt block (supports prompt caching metadata)."""

    type: str = "text"
    text: str | None = None

    model_config = ConfigDict(extra="allow")


class ToolDefinition(BaseModel):
    """Tool advertised to the model for this request."""

    name: str = Field(..., description="Tool name")
    description: str | None = Field(None, description="Tool description")
    input_schema: dict[str, Any] = Field(
        default_factory=dict, description="JSON Schema for the tool input"
    )

    model_config = ConfigDict(extra="allow")


class MessageCreateParams(BaseModel):
    """Request parameters for POST /v1/messages."""

    model: Annotated[
        str | None, Field(description="Requested model; remapped before use")
    ] = None
    messages: Annotated[
        list[Message],
        Field(description="Array of messages in the conversation"),
    ]
    system: Annotated[
        str | list[SystemBlock] | None,
        Field(description="System prompt to provide context and instructions"),
    ] = None
    tools: Annotated[
        list[ToolDefinition] | None,
        Field(description="Available tools for the model to use"),
    ] = None
    stream: Annotated[
        bool | None, Field(description="Whether to stream the response")
    ] = False
    max_tokens: Annotated[
        int | None, Field(description="Maximum number of tokens to generate", ge=1)
    ] = None

    # Sampling parameters and metadata are accepted for compatibility but the
    # backend does not expose them.
    model_config = ConfigDict(extra="allow")
