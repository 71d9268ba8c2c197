"""Request ID middleware for generating and tracking request IDs."""

from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from falproxy.core.logging import get_logger
from falproxy.utils.ids import new_request_id


logger = get_logger(__name__)

REQUEST_ID_HEADER = "x-request-id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and echo it in the response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            logger.debug(
                "request_started",
                method=request.method,
                path=str(request.url.path),
                client_ip=request.client.host if request.client else "unknown",
            )
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.debug("request_completed", status_code=response.status_code)
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
