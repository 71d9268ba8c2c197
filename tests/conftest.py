"""Shared test fixtures and configuration for falproxy tests.

Fixtures use the real application components and mock only the fal.ai
backend (through pytest-httpx).
"""

from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pytest_httpx import HTTPXMock

from falproxy.api.app import create_app
from falproxy.config.core import BackendSettings, StreamingSettings
from falproxy.config.settings import Settings, get_settings
from falproxy.core.logging import setup_logging


FAL_BASE_URL = "https://fal.test"
STANDARD_URL = f"{FAL_BASE_URL}/fal-ai/any-llm"
TEST_API_KEY = "fal-test-key"


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom settings."""
    setup_logging(json_logs=False, log_level_name="DEBUG", log_format="plain")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep host environment variables out of the settings under test."""
    for key in ("PORT", "MODEL_MAPPING", "CONFIG_FILE"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Settings pointing at a fake backend with pacing disabled."""
    return Settings(
        backend=BackendSettings(
            base_url=FAL_BASE_URL,
            model_mapping={"claude-3-5-sonnet-20241022": "anthropic/claude-3.5-sonnet"},
        ),
        streaming=StreamingSettings(text_delay=0, tool_delay=0),
    )


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"x-api-key": TEST_API_KEY}


@pytest.fixture
def mock_fal_output(httpx_mock: HTTPXMock) -> Callable[..., HTTPXMock]:
    """Register a fal.ai reply carrying ``output`` as its generated text."""

    def _register(output: Any, url: str = STANDARD_URL, **extra: Any) -> HTTPXMock:
        httpx_mock.add_response(
            method="POST", url=url, json={"output": output, **extra}
        )
        return httpx_mock

    return _register


@pytest.fixture
def mock_fal_failure(httpx_mock: HTTPXMock) -> Callable[..., HTTPXMock]:
    """Register a failing fal.ai reply: an HTTP status or a transport error."""

    def _register(
        status_code: int | None = None, url: str = STANDARD_URL
    ) -> HTTPXMock:
        if status_code is None:
            httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=url)
        else:
            httpx_mock.add_response(
                method="POST",
                url=url,
                status_code=status_code,
                json={"detail": "upstream rejected the request"},
            )
        return httpx_mock

    return _register
