"""Custom exceptions for the fal proxy API server."""

from typing import Any


class ProxyError(Exception):
    """Base exception for proxy errors."""

    def __init__(
        self,
        message: str,
        error_type: str = "internal_error",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}


class ValidationError(ProxyError):
    """Validation error (400)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            error_type="invalid_request_error",
            status_code=400,
            details=details,
        )


class AuthenticationError(ProxyError):
    """Authentication error (401)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(
            message=message, error_type="authentication_error", status_code=401
        )


class UpstreamError(ProxyError):
    """Inference backend failure (500).

    The backend is opaque: transport errors, non-2xx replies and malformed
    payloads all surface as a generic internal error.
    """

    def __init__(
        self,
        message: str = "Upstream inference request failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_type="internal_error",
            status_code=500,
            details=details,
        )
