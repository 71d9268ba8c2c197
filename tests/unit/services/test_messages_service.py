"""Tests for MessagesService orchestration."""

from unittest.mock import AsyncMock, Mock

import pytest

from falproxy.config.core import BackendSettings
from falproxy.llms.emitter import ResponseEmitter
from falproxy.models.requests import MessageCreateParams
from falproxy.services.fal_client import FalClient
from falproxy.services.messages import MessagesService
from falproxy.utils.model_mapping import ModelMapper


def make_service(output: str, verbose: bool = False) -> tuple[MessagesService, Mock]:
    settings = BackendSettings()
    fal_client = Mock(spec=FalClient)
    fal_client.select_endpoint.return_value = settings.standard_endpoint
    fal_client.generate = AsyncMock(return_value=output)

    service = MessagesService(
        fal_client=fal_client,
        model_mapper=ModelMapper({"claude-3-5-sonnet": "anthropic/claude-3.5-sonnet"}),
        emitter=ResponseEmitter(text_delay=0, tool_delay=0),
        backend_settings=settings,
        verbose=verbose,
        tool_id_generator=lambda: "toolu_fixed",
    )
    return service, fal_client


def make_request(**payload) -> MessageCreateParams:
    payload.setdefault("messages", [{"role": "user", "content": "hi"}])
    return MessageCreateParams.model_validate(payload)


@pytest.mark.unit
class TestMessagesService:
    async def test_remaps_model_and_reports_requested_name(self):
        service, fal_client = make_service("Hello")

        completion = await service.complete(
            make_request(model="claude-3-5-sonnet", max_tokens=100), api_key="key"
        )

        kwargs = fal_client.generate.await_args.kwargs
        assert kwargs["model"] == "anthropic/claude-3.5-sonnet"
        assert kwargs["api_key"] == "key"
        assert kwargs["max_tokens"] == 100
        assert kwargs["endpoint"] == "fal-ai/any-llm"
        assert completion.model == "claude-3-5-sonnet"
        assert completion.parsed.leading_text == "Hello"

    async def test_missing_model_uses_default(self):
        service, fal_client = make_service("Hello")
        completion = await service.complete(make_request(), api_key="key")

        assert fal_client.generate.await_args.kwargs["model"] == "google/gemini-2.5-flash-lite"
        assert completion.model == "google/gemini-2.5-flash-lite"

    async def test_compiled_prompt_is_sent(self):
        service, fal_client = make_service("Hello")
        await service.complete(make_request(system="Be brief."), api_key="key")

        prompt = fal_client.generate.await_args.args[0]
        assert prompt.system_prompt == "<system>\nBe brief.\n</system>"
        assert prompt.user_prompt == "hi"
        fal_client.select_endpoint.assert_called_once_with(prompt)

    async def test_tool_calls_are_parsed_with_injected_ids(self):
        service, _ = make_service(
            'Sure.<tool_calls><tool_call name="lookup"><arguments>{"q": 1}'
            "</arguments></tool_call></tool_calls>",
            verbose=True,
        )
        completion = await service.complete(make_request(), api_key="key")
        message = service.build_message(completion)

        assert message.stop_reason == "tool_use"
        assert [block.model_dump() for block in message.content] == [
            {"type": "text", "text": "Sure."},
            {"type": "tool_use", "id": "toolu_fixed", "name": "lookup", "input": {"q": 1}},
        ]

    async def test_stream_message_yields_sse_frames(self):
        service, _ = make_service("Hi")
        completion = await service.complete(make_request(stream=True), api_key="key")

        frames = [frame async for frame in service.stream_message(completion)]
        assert frames[0].startswith("event: message_start\n")
        assert frames[-1] == 'event: message_stop\ndata: {"type":"message_stop"}\n\n'
