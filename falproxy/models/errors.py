"""Anthropic error bodies built from proxy exceptions."""

from typing import Literal

from pydantic import BaseModel

from falproxy.exceptions import ProxyError


class ErrorDetail(BaseModel):
    type: str
    message: str


class ErrorResponse(BaseModel):
    """``{"type": "error", "error": {...}}`` body returned by every failed request."""

    type: Literal["error"] = "error"
    error: ErrorDetail

    @classmethod
    def from_exception(cls, exc: ProxyError) -> "ErrorResponse":
        return cls(error=ErrorDetail(type=exc.error_type, message=exc.message))
