"""Client for the fal.ai any-llm inference endpoints."""

from typing import Any

import httpx

from falproxy.config.core import BackendSettings
from falproxy.core.logging import get_logger
from falproxy.exceptions import UpstreamError
from falproxy.llms.prompt import CompiledPrompt


logger = get_logger(__name__)

STANDARD_ENDPOINT = "fal-ai/any-llm"
ENTERPRISE_ENDPOINT = "fal-ai/any-llm/enterprise"
DEFAULT_ENTERPRISE_THRESHOLD = 5000


def select_endpoint(
    system_prompt: str,
    user_prompt: str,
    threshold: int = DEFAULT_ENTERPRISE_THRESHOLD,
    standard_endpoint: str = STANDARD_ENDPOINT,
    enterprise_endpoint: str = ENTERPRISE_ENDPOINT,
) -> str:
    """Route oversized prompts to the enterprise-capacity endpoint.

    The enterprise endpoint is used when either prompt string is longer than
    ``threshold`` characters.
    """
    if len(system_prompt) > threshold or len(user_prompt) > threshold:
        return enterprise_endpoint
    return standard_endpoint


class FalClient:
    """Sends a compiled prompt to fal.ai and returns the raw text output.

    Uses the synchronous run API (``POST {base_url}/{endpoint}``), which
    blocks until the generation has finished.
    """

    def __init__(self, http_client: httpx.AsyncClient, settings: BackendSettings):
        self.http_client = http_client
        self.settings = settings

    def select_endpoint(self, prompt: CompiledPrompt) -> str:
        return select_endpoint(
            prompt.system_prompt,
            prompt.user_prompt,
            threshold=self.settings.enterprise_threshold,
            standard_endpoint=self.settings.standard_endpoint,
            enterprise_endpoint=self.settings.enterprise_endpoint,
        )

    def build_payload(
        self, prompt: CompiledPrompt, model: str, max_tokens: int | None
    ) -> dict[str, Any]:
        return {
            "prompt": prompt.user_prompt,
            "system_prompt": prompt.system_prompt,
            "model": model,
            "max_tokens": max_tokens or self.settings.default_max_tokens,
        }

    async def generate(
        self,
        prompt: CompiledPrompt,
        model: str,
        api_key: str,
        max_tokens: int | None = None,
        endpoint: str | None = None,
    ) -> str:
        """Run one generation and return the backend's ``output`` text.

        Raises:
            UpstreamError: On transport failures, non-2xx responses or a reply
                without a string ``output`` field
        """
        endpoint = endpoint or self.select_endpoint(prompt)
        url = f"{self.settings.base_url.rstrip('/')}/{endpoint}"
        payload = self.build_payload(prompt, model, max_tokens)

        logger.debug("upstream_request_started", url=url, model=model)

        try:
            response = await self.http_client.post(
                url,
                json=payload,
                headers={"Authorization": f"Key {api_key}"},
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "upstream_request_rejected",
                url=url,
                status_code=e.response.status_code,
                body=e.response.text[:500],
            )
            raise UpstreamError(
                f"Upstream returned HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.error("upstream_request_failed", url=url, error=str(e), exc_info=e)
            raise UpstreamError(f"Upstream request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Upstream returned a non-JSON response") from e

        output = data.get("output") if isinstance(data, dict) else None
        if not isinstance(output, str):
            raise UpstreamError("Upstream response has no text output")

        logger.debug(
            "upstream_request_completed",
            url=url,
            output_chars=len(output),
        )
        return output
