"""
Application error taxonomy.

Services raise these; the handlers registered in `register_exception_handlers`
turn them into the JSON envelope

    {"error": ..., "message": ..., "timestamp": ..., "requestId": ...}

with the HTTP status of the error class. Anything unexpected is logged and
reported as an InternalError without leaking details.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.details}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "validation_error"


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"


class InsufficientCredits(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "insufficient_credits"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient credits: {required} required, {available} available",
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class InvalidTransition(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_transition"


class NoMatchingTier(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "no_matching_tier"

    def __init__(self, quantity: int):
        super().__init__(f"No pricing tier found for quantity {quantity}", quantity=quantity)
        self.quantity = quantity


class UpstreamError(AppError):
    """
    Failure of an external provider (image generation, storage, payments, membership).

    `kind` selects the status: rate_limited -> 429, timeout -> 504,
    anything else -> 503.
    """

    error = "upstream_error"
    _STATUS_BY_KIND = {
        "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
        "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
        "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    def __init__(self, message: str, kind: str = "unavailable", provider: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.status_code = self._STATUS_BY_KIND.get(kind, status.HTTP_503_SERVICE_UNAVAILABLE)


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or "unknown"


def error_response(request: Request, exc: AppError) -> JSONResponse:
    """Build the error envelope for an AppError."""
    request_id = _request_id(request)
    body = exc.to_payload()
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    body["requestId"] = request_id
    return JSONResponse(
        status_code=exc.status_code,
        content=body,
        headers={"X-Request-ID": request_id},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error}: {exc.message}",
        extra={"event": "request_failed", "error": exc.error, "status_code": exc.status_code, "path": request.url.path},
    )
    return error_response(request, exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return error_response(request, ValidationError(message))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        app_exc: AppError = AuthError(str(exc.detail))
    elif exc.status_code == status.HTTP_404_NOT_FOUND:
        app_exc = NotFoundError(str(exc.detail))
    elif exc.status_code < 500:
        app_exc = ValidationError(str(exc.detail))
        app_exc.status_code = exc.status_code
    else:
        app_exc = InternalError("An unexpected error occurred")
    response = error_response(request, app_exc)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        extra={"event": "unhandled_error", "path": request.url.path},
        exc_info=True,
    )
    return error_response(request, InternalError("An unexpected error occurred"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
