"""
Error types raised by the verification service and the handlers that render them.

Every typed error derives from AppError; the handlers below turn them into
{"error", "code", ...} JSON bodies with the matching status.

Verification outcomes (mismatch, expired, ...) are NOT exceptions; they are
returned as values by the registry and mapped to responses by the route.

Non-AppError exceptions (including pymongo infrastructure failures) bubble up
as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class InvalidVerificationError(AppError):
    """Wrong, unknown, superseded or already-used token/code (never distinguished)."""

    status_code = 400
    error_code = "invalid_verification"


class VerificationExpiredError(AppError):
    status_code = 400
    error_code = "verification_expired"


def _error_response(err: AppError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers; every error body has the AppError shape."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("app_error", path=request.url.path, code=exc.error_code)
        else:
            log.info("request_rejected", path=request.url.path, code=exc.error_code)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Report the first offending field only
        problems = exc.errors()
        loc = problems[0].get("loc") if problems else None
        return _error_response(
            ValidationError("Invalid request body", field=str(loc[-1]) if loc else None)
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(
        request: Request, exc: RateLimitExceeded
    ) -> JSONResponse:
        log.warning("rate_limit_exceeded", path=request.url.path, limit=exc.detail)
        return _error_response(RateLimitError(f"ratelimit exceeded {exc.detail}"))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry has already captured the exception when it is enabled
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return _error_response(AppError("An internal server error occurred."))
