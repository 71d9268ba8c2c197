"""Render parsed backend output in the Anthropic Messages response format.

The backend call has already completed when emission starts, so "streaming"
re-segments the full reply into fixed-size slices with a configurable pause
between them.
"""

import asyncio
from collections.abc import AsyncIterator, Iterator
from typing import Any

from falproxy.config.core import StreamingSettings
from falproxy.core.logging import get_logger
from falproxy.models.messages import (
    MessageResponse,
    StopReason,
    TextContentBlock,
    ToolUseContentBlock,
    Usage,
)
from falproxy.utils.ids import IdGenerator, new_message_id
from falproxy.utils.token_counting import estimate_tokens

from .parser import ParsedOutput
from .xml import dump_json


logger = get_logger(__name__)

# The backend reports no usage; input tokens are a fixed placeholder
PLACEHOLDER_INPUT_TOKENS = 100


def stop_reason_for(parsed: ParsedOutput) -> StopReason:
    return "tool_use" if parsed.tool_calls else "end_turn"


def estimate_output_tokens(parsed: ParsedOutput) -> int:
    """Estimate output usage from the leading text and the serialized calls."""
    calls = dump_json([call.to_dict() for call in parsed.tool_calls])
    return estimate_tokens(parsed.leading_text) + estimate_tokens(calls)


def chunk_text(text: str, size: int) -> Iterator[str]:
    """Yield consecutive slices of at most ``size`` characters."""
    for start in range(0, len(text), size):
        yield text[start : start + size]


def build_message_response(
    parsed: ParsedOutput,
    model: str,
    message_id: str | None = None,
) -> MessageResponse:
    """Build a complete (non-streaming) message from parsed output."""
    content: list[TextContentBlock | ToolUseContentBlock] = []
    if parsed.leading_text:
        content.append(TextContentBlock(text=parsed.leading_text))
    for call in parsed.tool_calls:
        content.append(
            ToolUseContentBlock(id=call.id, name=call.name, input=call.input)
        )

    return MessageResponse(
        id=message_id or new_message_id(),
        content=content,
        model=model,
        stop_reason=stop_reason_for(parsed),
        stop_sequence=None,
        usage=Usage(
            input_tokens=PLACEHOLDER_INPUT_TOKENS,
            output_tokens=estimate_output_tokens(parsed),
        ),
    )


class StreamingFormatter:
    """Formats events as Anthropic-style Server-Sent Events."""

    @staticmethod
    def format_event(event_type: str, data: dict[str, Any]) -> str:
        """
        Format an event for Server-Sent Events.

        Args:
            event_type: Type of the event
            data: Event data dictionary

        Returns:
            Formatted SSE string
        """
        json_data = dump_json(data)
        return f"event: {event_type}\ndata: {json_data}\n\n"

    @staticmethod
    def message_start(message_id: str, model: str) -> dict[str, Any]:
        return {
            "type": "message_start",
            "message": {
                "id": message_id,
                "type": "message",
                "role": "assistant",
                "content": [],
                "model": model,
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": PLACEHOLDER_INPUT_TOKENS, "output_tokens": 1},
            },
        }

    @staticmethod
    def content_block_start(index: int, block: dict[str, Any]) -> dict[str, Any]:
        return {"type": "content_block_start", "index": index, "content_block": block}

    @staticmethod
    def text_delta(index: int, text: str) -> dict[str, Any]:
        return {
            "type": "content_block_delta",
            "index": index,
            "delta": {"type": "text_delta", "text": text},
        }

    @staticmethod
    def input_json_delta(index: int, partial_json: str) -> dict[str, Any]:
        return {
            "type": "content_block_delta",
            "index": index,
            "delta": {"type": "input_json_delta", "partial_json": partial_json},
        }

    @staticmethod
    def content_block_stop(index: int) -> dict[str, Any]:
        return {"type": "content_block_stop", "index": index}

    @staticmethod
    def message_delta(stop_reason: str, output_tokens: int) -> dict[str, Any]:
        return {
            "type": "message_delta",
            "delta": {"stop_reason": stop_reason, "stop_sequence": None},
            "usage": {"output_tokens": output_tokens},
        }

    @staticmethod
    def message_stop() -> dict[str, Any]:
        return {"type": "message_stop"}


class ResponseEmitter:
    """Renders parsed output as a complete message or a paced event sequence.

    Args:
        text_chunk_size: Characters per ``text_delta`` event
        tool_chunk_size: Characters per ``input_json_delta`` event
        text_delay: Seconds to pause after each text slice (0 disables)
        tool_delay: Seconds to pause after each tool JSON slice (0 disables)
        id_generator: Message id factory
    """

    def __init__(
        self,
        text_chunk_size: int = 15,
        tool_chunk_size: int = 20,
        text_delay: float = 0.010,
        tool_delay: float = 0.008,
        id_generator: IdGenerator | None = None,
    ) -> None:
        if text_chunk_size < 1 or tool_chunk_size < 1:
            raise ValueError("Chunk sizes must be positive")
        self.text_chunk_size = text_chunk_size
        self.tool_chunk_size = tool_chunk_size
        self.text_delay = text_delay
        self.tool_delay = tool_delay
        self._new_id = id_generator or new_message_id

    @classmethod
    def from_settings(
        cls, settings: StreamingSettings, id_generator: IdGenerator | None = None
    ) -> "ResponseEmitter":
        return cls(
            text_chunk_size=settings.text_chunk_size,
            tool_chunk_size=settings.tool_chunk_size,
            text_delay=settings.text_delay,
            tool_delay=settings.tool_delay,
            id_generator=id_generator,
        )

    def build_message(
        self, parsed: ParsedOutput, model: str, message_id: str | None = None
    ) -> MessageResponse:
        return build_message_response(parsed, model, message_id or self._new_id())

    async def _pause(self, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)

    async def iter_events(
        self, parsed: ParsedOutput, model: str, message_id: str | None = None
    ) -> AsyncIterator[tuple[str, dict[str, Any]]]:
        """Yield ``(event_name, payload)`` records in protocol order."""
        fmt = StreamingFormatter
        index = 0

        yield "message_start", fmt.message_start(message_id or self._new_id(), model)

        if parsed.leading_text:
            yield "content_block_start", fmt.content_block_start(
                index, {"type": "text", "text": ""}
            )
            for chunk in chunk_text(parsed.leading_text, self.text_chunk_size):
                yield "content_block_delta", fmt.text_delta(index, chunk)
                await self._pause(self.text_delay)
            yield "content_block_stop", fmt.content_block_stop(index)
            index += 1

        for call in parsed.tool_calls:
            yield "content_block_start", fmt.content_block_start(
                index,
                {"type": "tool_use", "id": call.id, "name": call.name, "input": {}},
            )
            for chunk in chunk_text(dump_json(call.input), self.tool_chunk_size):
                yield "content_block_delta", fmt.input_json_delta(index, chunk)
                await self._pause(self.tool_delay)
            yield "content_block_stop", fmt.content_block_stop(index)
            index += 1

        yield "message_delta", fmt.message_delta(
            stop_reason_for(parsed), estimate_output_tokens(parsed)
        )
        yield "message_stop", fmt.message_stop()

    async def stream(
        self, parsed: ParsedOutput, model: str, message_id: str | None = None
    ) -> AsyncIterator[str]:
        """Yield SSE frames; abandoned silently when the client disconnects."""
        frames = 0
        try:
            events = self.iter_events(parsed, model, message_id)
            async for event_type, payload in events:
                frames += 1
                yield StreamingFormatter.format_event(event_type, payload)
        except asyncio.CancelledError:
            logger.debug("stream_cancelled_by_client", frames_sent=frames)
            raise
        logger.debug("stream_completed", frames_sent=frames)
