"""Translation between Anthropic messages and the flattened fal.ai prompt."""

from .emitter import ResponseEmitter, build_message_response
from .parser import ParsedOutput, ToolCall, parse_output
from .prompt import CompiledPrompt, compile_prompt


__all__ = [
    "CompiledPrompt",
    "ParsedOutput",
    "ResponseEmitter",
    "ToolCall",
    "build_message_response",
    "compile_prompt",
    "parse_output",
]
