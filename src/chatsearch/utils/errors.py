"""Error hierarchy and FastAPI handlers rendering uniform JSON documents."""

from __future__ import annotations

from typing import Optional, cast

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chatsearch.types import JSONDict, JSONValue
from chatsearch.utils.logging import get_trace_id


class ApiError(Exception):
    """Base application exception carrying a machine-friendly code."""

    status_code = 500
    code = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[JSONValue] = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: JSONValue = details if details is not None else {}
        self.code = code or self.__class__.code

    def to_payload(self) -> JSONDict:
        """Return the standard error document used across HTTP handlers."""
        return {
            "error": {"code": self.code, "message": self.message},
            "details": self.details,
            "trace_id": get_trace_id(),
        }


class BadRequest(ApiError):
    """Raised when user input is invalid."""

    status_code = 400
    code = "bad_request"


class Unauthorized(ApiError):
    """Raised when the bearer token is missing or wrong."""

    status_code = 401
    code = "unauthorized"


class NotFound(ApiError):
    """Raised when a chat or another resource cannot be located."""

    status_code = 404
    code = "not_found"


class TooManyRequests(ApiError):
    """Raised when a caller exhausted its rate limit bucket."""

    status_code = 429
    code = "too_many_requests"


class UpstreamError(ApiError):
    """Raised when an external dependency (search provider) fails."""

    status_code = 502
    code = "upstream_error"


class SearchFailed(UpstreamError):
    """Generic SearxNG failure; the underlying cause is only logged."""

    def __init__(self, message: str = "Failed to perform search") -> None:
        super().__init__(message)


class ConfigUpdateError(ApiError):
    """Raised when the merged configuration cannot be persisted."""

    code = "config_update_failed"


def api_error_handler(_: Request, exc: Exception) -> JSONResponse:
    """Return a standardized JSON response for custom exceptions."""
    assert isinstance(exc, ApiError)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Translate FastAPI HTTPException into the project error document."""
    assert isinstance(exc, HTTPException)
    payload: JSONDict = {
        "error": {"code": "http_error", "message": exc.detail},
        "details": {},
        "trace_id": get_trace_id(),
    }
    return JSONResponse(status_code=exc.status_code, content=payload)


def unexpected_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected exceptions."""
    payload: JSONDict = {
        "error": {"code": "internal_error", "message": str(exc)},
        "details": {},
        "trace_id": get_trace_id(),
    }
    return JSONResponse(status_code=500, content=payload)


def request_validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Return a consistent payload for FastAPI validation errors."""
    assert isinstance(exc, RequestValidationError)

    def _serialize(value: object) -> object:
        if isinstance(value, Exception):
            return str(value)
        if isinstance(value, dict):
            return {str(k): _serialize(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [_serialize(item) for item in value]
        return value

    details: list[object] = [
        cast(object, {str(key): _serialize(value) for key, value in error.items()})
        for error in exc.errors()
    ]
    payload: JSONDict = {
        "error": {"code": "validation_error", "message": "Request validation failed"},
        "details": details,
        "trace_id": get_trace_id(),
    }
    return JSONResponse(status_code=422, content=payload)


__all__ = [
    "ApiError",
    "BadRequest",
    "Unauthorized",
    "NotFound",
    "TooManyRequests",
    "UpstreamError",
    "SearchFailed",
    "ConfigUpdateError",
    "api_error_handler",
    "http_exception_handler",
    "unexpected_exception_handler",
    "request_validation_exception_handler",
]
