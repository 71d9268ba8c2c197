"""Health check endpoints for the fal proxy API server.

- /healthz: minimal liveness check
- /health: detailed status including backend configuration
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Response

from falproxy import __version__
from falproxy.api.dependencies import ModelMapperDep, SettingsDep
from falproxy.core.logging import get_logger


router = APIRouter()
logger = get_logger(__name__)


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/health")
async def health_check(
    response: Response, settings: SettingsDep, model_mapper: ModelMapperDep
) -> dict[str, Any]:
    """Detailed health check.

    Reports the configured backend without contacting it; the backend is
    keyed per request by the caller's own API key.
    """
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    logger.debug("health_check_request")

    backend = settings.backend
    return {
        "status": "ok",
        "version": __version__,
        "time": datetime.now(UTC).isoformat(),
        "backend": {
            "base_url": backend.base_url,
            "standard_endpoint": backend.standard_endpoint,
            "enterprise_endpoint": backend.enterprise_endpoint,
            "enterprise_threshold": backend.enterprise_threshold,
            "default_model": backend.default_model,
            "model_mappings": len(model_mapper),
        },
    }
