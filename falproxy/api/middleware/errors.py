"""Error handlers rendering every failure as an Anthropic error body."""

from collections.abc import Sequence
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from falproxy.core.logging import get_logger
from falproxy.exceptions import ProxyError, ValidationError
from falproxy.models.errors import ErrorResponse


logger = get_logger(__name__)

# HTTP status to Anthropic error type for errors raised outside the proxy
_HTTP_ERROR_TYPES = {
    400: "invalid_request_error",
    401: "authentication_error",
    403: "permission_error",
    404: "not_found_error",
    405: "invalid_request_error",
    413: "request_too_large",
    429: "rate_limit_error",
}


def error_response(exc: ProxyError) -> JSONResponse:
    body = ErrorResponse.from_exception(exc)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def format_validation_errors(errors: Sequence[Any]) -> str:
    """Flatten pydantic errors into ``loc: msg`` pairs."""
    parts = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        msg = error.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def setup_error_handlers(app: FastAPI) -> None:
    """Setup error handlers for the FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "proxy_error",
            error_type=exc.error_type,
            error_message=exc.message,
            status_code=exc.status_code,
            request_method=request.method,
            request_url=str(request.url.path),
            details=exc.details or None,
        )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError(format_validation_errors(exc.errors()))
        logger.warning(
            "request_validation_failed",
            error_message=error.message,
            request_url=str(request.url.path),
        )
        return error_response(error)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        log = logger.debug if exc.status_code == 404 else logger.warning
        log(
            "http_error",
            status_code=exc.status_code,
            error_message=exc.detail,
            request_method=request.method,
            request_url=str(request.url.path),
        )
        error_type = _HTTP_ERROR_TYPES.get(
            exc.status_code,
            "api_error" if exc.status_code >= 500 else "invalid_request_error",
        )
        return error_response(
            ProxyError(str(exc.detail), error_type, exc.status_code)
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error_message=str(exc),
            request_method=request.method,
            request_url=str(request.url.path),
            exc_info=exc,
        )
        return error_response(ProxyError(str(exc) or "Internal server error"))
