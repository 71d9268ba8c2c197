"""Shared dependencies for the fal proxy API server."""

from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from falproxy.config.settings import Settings, get_settings
from falproxy.core.logging import get_logger
from falproxy.exceptions import AuthenticationError
from falproxy.llms.emitter import ResponseEmitter
from falproxy.services.fal_client import FalClient
from falproxy.services.messages import MessagesService
from falproxy.utils.model_mapping import ModelMapper


logger = get_logger(__name__)

# HTTP Bearer scheme for extracting tokens
bearer_scheme = HTTPBearer(auto_error=False)


def get_cached_settings(request: Request) -> Settings:
    """Get settings from app state, falling back to the process-wide instance."""
    settings: Settings | None = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_http_client(request: Request) -> httpx.AsyncClient:
    client: httpx.AsyncClient | None = getattr(request.app.state, "http_client", None)
    if client is None:
        logger.error("http_client_missing_on_app_state")
        raise HTTPException(status_code=503, detail="HTTP client not initialized")
    return client


def get_model_mapper(request: Request) -> ModelMapper:
    mapper: ModelMapper | None = getattr(request.app.state, "model_mapper", None)
    if mapper is None:
        mapper = ModelMapper(get_cached_settings(request).backend.model_mapping)
        request.app.state.model_mapper = mapper
    return mapper


def extract_api_key(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    request: Request,
) -> str:
    """
    Extract the caller's fal.ai key from the request headers.

    Supports:
    - Anthropic format: x-api-key: <key>
    - Bearer format: Authorization: Bearer <key>

    The key is forwarded to the backend unchanged.

    Raises:
        AuthenticationError: If neither header carries a key
    """
    x_api_key = request.headers.get("x-api-key")
    if x_api_key:
        return x_api_key

    if credentials and credentials.credentials:
        return credentials.credentials

    raise AuthenticationError(
        "Missing API key: provide x-api-key or Authorization: Bearer <key>"
    )


SettingsDep = Annotated[Settings, Depends(get_cached_settings)]
HTTPClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]
ModelMapperDep = Annotated[ModelMapper, Depends(get_model_mapper)]
APIKeyDep = Annotated[str, Depends(extract_api_key)]


def get_messages_service(
    settings: SettingsDep,
    http_client: HTTPClientDep,
    model_mapper: ModelMapperDep,
) -> MessagesService:
    return MessagesService(
        fal_client=FalClient(http_client, settings.backend),
        model_mapper=model_mapper,
        emitter=ResponseEmitter.from_settings(settings.streaming),
        backend_settings=settings.backend,
        verbose=settings.logging.verbose_api,
    )


MessagesServiceDep = Annotated[MessagesService, Depends(get_messages_service)]
