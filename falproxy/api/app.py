"""FastAPI application factory for the fal proxy API server."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from falproxy import __version__
from falproxy.api.middleware.errors import setup_error_handlers
from falproxy.api.middleware.request_id import RequestIDMiddleware
from falproxy.api.routes import health_router, messages_router, models_router
from falproxy.config.settings import Settings, get_settings
from falproxy.core.logging import get_logger, setup_logging
from falproxy.utils.model_mapping import ModelMapper


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the shared HTTP client and model mapper; close the client on exit."""
    settings: Settings = app.state.settings

    logger.info(
        "server_start",
        host=settings.server.host,
        port=settings.server.port,
        url=settings.server_url,
        category="lifecycle",
    )

    app.state.http_client = httpx.AsyncClient(timeout=settings.backend.timeout)
    app.state.model_mapper = ModelMapper(settings.backend.model_mapping)
    logger.debug(
        "backend_configured",
        base_url=settings.backend.base_url,
        enterprise_threshold=settings.backend.enterprise_threshold,
        model_mappings=len(app.state.model_mapper),
        category="config",
    )

    try:
        yield
    finally:
        await app.state.http_client.aclose()
        logger.info("server_stop", category="lifecycle")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.logging.format == "json",
            log_level_name=settings.logging.level,
            log_format=settings.logging.format,
        )

    app = FastAPI(
        title="fal proxy API Server",
        description="Anthropic Messages API compatible proxy for fal.ai any-llm models",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-request-id"],
    )
    app.add_middleware(RequestIDMiddleware)
    setup_error_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(messages_router, prefix="/v1", tags=["messages"])
    app.include_router(models_router, prefix="/v1", tags=["models"])

    return app
