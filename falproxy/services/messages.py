"""Orchestrates one Messages API request against the fal.ai backend."""

from collections.abc import AsyncIterator
from dataclasses import dataclass

from falproxy.config.core import BackendSettings
from falproxy.core.logging import get_logger
from falproxy.llms.emitter import ResponseEmitter
from falproxy.llms.parser import ParsedOutput, parse_output
from falproxy.llms.prompt import CompiledPrompt, compile_prompt
from falproxy.models.messages import MessageResponse
from falproxy.models.requests import MessageCreateParams
from falproxy.utils.ids import IdGenerator
from falproxy.utils.model_mapping import ModelMapper

from .fal_client import FalClient


logger = get_logger(__name__)

_PREVIEW_CHARS = 500


def _preview(text: str, limit: int = _PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else f"{text[:limit]}...(truncated)"


@dataclass
class Completion:
    """Backend reply for one request, ready to be emitted."""

    model: str
    parsed: ParsedOutput


class MessagesService:
    """Compile, call the backend, parse and hand off to the emitter."""

    def __init__(
        self,
        fal_client: FalClient,
        model_mapper: ModelMapper,
        emitter: ResponseEmitter,
        backend_settings: BackendSettings,
        verbose: bool = False,
        tool_id_generator: IdGenerator | None = None,
    ) -> None:
        self.fal_client = fal_client
        self.model_mapper = model_mapper
        self.emitter = emitter
        self.backend_settings = backend_settings
        self.verbose = verbose
        self.tool_id_generator = tool_id_generator

    def compile(self, request: MessageCreateParams) -> CompiledPrompt:
        prompt = compile_prompt(request.messages, request.system, request.tools)
        logger.info(
            "prompt_compiled",
            system_prompt_chars=len(prompt.system_prompt),
            user_prompt_chars=len(prompt.user_prompt),
        )
        if self.verbose:
            logger.debug(
                "prompt_compiled_detail",
                system_prompt=_preview(prompt.system_prompt),
                user_prompt=_preview(prompt.user_prompt),
            )
        return prompt

    async def complete(self, request: MessageCreateParams, api_key: str) -> Completion:
        """Run the backend call and parse its reply.

        The reply is always fully received before any output is emitted, so
        both response modes share this step.
        """
        requested_model = request.model or self.backend_settings.default_model
        backend_model = self.model_mapper.map(requested_model)

        logger.info(
            "message_request_received",
            requested_model=requested_model,
            backend_model=backend_model,
            messages=len(request.messages),
            tools=len(request.tools or []),
            stream=bool(request.stream),
        )

        prompt = self.compile(request)
        endpoint = self.fal_client.select_endpoint(prompt)
        logger.info("upstream_endpoint_selected", endpoint=endpoint)

        output = await self.fal_client.generate(
            prompt,
            model=backend_model,
            api_key=api_key,
            max_tokens=request.max_tokens,
            endpoint=endpoint,
        )
        if self.verbose:
            logger.debug("upstream_output", output=_preview(output))

        parsed = parse_output(output, id_generator=self.tool_id_generator)
        logger.info(
            "upstream_output_parsed",
            output_chars=len(output),
            text_chars=len(parsed.leading_text),
            tool_calls=len(parsed.tool_calls),
            recovered_tool_calls=parsed.recovered_count,
        )

        # The response reports the model name the client asked for
        return Completion(model=requested_model, parsed=parsed)

    def build_message(self, completion: Completion) -> MessageResponse:
        return self.emitter.build_message(completion.parsed, completion.model)

    def stream_message(self, completion: Completion) -> AsyncIterator[str]:
        return self.emitter.stream(completion.parsed, completion.model)
