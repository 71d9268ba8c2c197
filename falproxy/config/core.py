"""Nested configuration sections."""

import json
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ServerSettings(BaseModel):
    """Server-specific configuration settings."""

    host: str = Field(
        default="127.0.0.1",
        description="Server host address",
    )

    port: int = Field(
        default=8080,
        description="Server port number",
        ge=1,
        le=65535,
    )

    reload: bool = Field(
        default=False,
        description="Enable auto-reload for development",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    format: str = Field(
        default="auto",
        description="Logging output format: 'rich' for development, 'json' for production, 'auto' for automatic selection",
    )

    verbose_api: bool = Field(
        default=False,
        description="Log compiled prompts and raw backend output at debug level",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        upper_v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate and normalize log format."""
        lower_v = v.lower()
        valid_formats = ["auto", "rich", "json", "plain"]
        if lower_v not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return lower_v


class BackendSettings(BaseModel):
    """fal.ai inference backend configuration."""

    base_url: str = Field(
        default="https://fal.run",
        description="Base URL of the synchronous fal.ai run API",
    )

    standard_endpoint: str = Field(
        default="fal-ai/any-llm",
        description="Endpoint used for regular-sized prompts",
    )

    enterprise_endpoint: str = Field(
        default="fal-ai/any-llm/enterprise",
        description="Endpoint used when a prompt exceeds the enterprise threshold",
    )

    enterprise_threshold: int = Field(
        default=5000,
        description="Prompt length in characters above which the enterprise endpoint is used",
        ge=0,
    )

    default_model: str = Field(
        default="google/gemini-2.5-flash-lite",
        description="Model used when the request does not name one",
    )

    default_max_tokens: int = Field(
        default=8192,
        description="max_tokens sent upstream when the request omits it",
        ge=1,
    )

    timeout: float = Field(
        default=300.0,
        description="Upstream request timeout in seconds",
        gt=0,
    )

    model_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Requested model name -> backend model name",
    )

    @field_validator("model_mapping", mode="before")
    @classmethod
    def parse_model_mapping(cls, v: Any) -> Any:
        """Accept the mapping as a JSON object string (e.g. from MODEL_MAPPING)."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                # Imported lazily: config is loaded before logging is set up
                from falproxy.core.logging import get_logger

                get_logger(__name__).warning(
                    "model_mapping_parse_failed", value=v, category="config"
                )
                return {}
            if not isinstance(parsed, dict):
                return {}
            return parsed
        return v


class StreamingSettings(BaseModel):
    """Pacing of locally re-segmented SSE output."""

    text_chunk_size: int = Field(
        default=15, description="Characters per text_delta event", ge=1
    )

    tool_chunk_size: int = Field(
        default=20, description="Characters per input_json_delta event", ge=1
    )

    text_delay: float = Field(
        default=0.010, description="Pause in seconds after each text slice", ge=0
    )

    tool_delay: float = Field(
        default=0.008, description="Pause in seconds after each tool JSON slice", ge=0
    )


class ModelCard(BaseModel):
    """Entry of the advertised model catalog."""

    id: str
    display_name: str
    created_at: str = "2024-01-01T00:00:00Z"


def _default_models() -> list[ModelCard]:
    entries = [
        ("anthropic/claude-3.7-sonnet", "Claude 3.7 Sonnet"),
        ("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet"),
        ("anthropic/claude-3-5-haiku", "Claude 3.5 Haiku"),
        ("anthropic/claude-3-haiku", "Claude 3 Haiku"),
        ("openai/gpt-4o", "GPT-4o"),
        ("openai/gpt-4o-mini", "GPT-4o Mini"),
        ("openai/gpt-4.1", "GPT-4.1"),
        ("openai/gpt-5-chat", "GPT-5 Chat"),
        ("openai/gpt-5-mini", "GPT-5 Mini"),
        ("openai/gpt-5-nano", "GPT-5 Nano"),
        ("openai/o3", "O3"),
        ("google/gemini-pro-1.5", "Gemini Pro 1.5"),
        ("google/gemini-2.5-pro", "Gemini 2.5 Pro"),
        ("google/gemini-flash-1.5", "Gemini Flash 1.5"),
        ("google/gemini-flash-1.5-8b", "Gemini Flash 1.5 8B"),
        ("google/gemini-2.0-flash-001", "Gemini 2.0 Flash"),
        ("google/gemini-2.5-flash", "Gemini 2.5 Flash"),
        ("google/gemini-2.5-flash-lite", "Gemini 2.5 Flash Lite"),
        ("meta-llama/llama-3.2-1b-instruct", "Llama 3.2 1B"),
        ("meta-llama/llama-3.2-3b-instruct", "Llama 3.2 3B"),
        ("meta-llama/llama-3.1-8b-instruct", "Llama 3.1 8B"),
        ("meta-llama/llama-3.1-70b-instruct", "Llama 3.1 70B"),
        ("meta-llama/llama-4-maverick", "Llama 4 Maverick"),
        ("meta-llama/llama-4-scout", "Llama 4 Scout"),
        ("openai/gpt-oss-120b", "GPT OSS 120B"),
    ]
    return [ModelCard(id=id_, display_name=name) for id_, name in entries]


class CatalogSettings(BaseModel):
    """Models advertised on GET /v1/models."""

    models: list[ModelCard] = Field(
        default_factory=_default_models,
        description="Advertised model catalog",
    )
