"""
Domain exception hierarchy and FastAPI handlers.

Every failure in the alerting core is scoped to a single request or entity:
    NotFoundError               entity id unknown (404)
    ForbiddenError              role / ownership violation (403)
    CardImmutableError          write to an issued digital ID card (403)
    InvalidTransitionError      illegal alert status change (409)
    DuplicateKeyError           uniqueness retries exhausted (409)
    ValidationFailedError       request rejected by a business rule (400)
    DependencyUnavailableError  store / fan-out timeout or failure (503)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)


class SafetrailError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(SafetrailError):
    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class ForbiddenError(SafetrailError):
    def __init__(self, message: str = "Insufficient permissions", *, error_code: str = "FORBIDDEN", **details: Any):
        super().__init__(
            message=message,
            status_code=403,
            error_code=error_code,
            details=details,
        )


class CardImmutableError(ForbiddenError):
    """Issued digital ID cards can never be written again."""

    def __init__(self, serial: str):
        super().__init__(
            f"Digital ID card {serial} is immutable; issue a new card instead",
            error_code="IMMUTABLE",
            serial=serial,
        )


class TimelineImmutableError(ForbiddenError):
    """Alert timeline entries are append-only."""

    def __init__(self, entry_id: int | None, alert_id: int | None):
        super().__init__(
            "Alert timeline entries cannot be changed or removed",
            error_code="TIMELINE_IMMUTABLE",
            entry_id=entry_id,
            alert_id=alert_id,
        )


class InvalidTransitionError(SafetrailError):
    def __init__(self, alert_id: str, current_status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} alert {alert_id} in status '{current_status}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"alert_id": alert_id, "status": current_status, "operation": operation},
        )


class DuplicateKeyError(SafetrailError):
    def __init__(self, key: str, attempts: int):
        super().__init__(
            message=f"Could not allocate a unique {key} after {attempts} attempts",
            status_code=409,
            error_code="DUPLICATE_KEY",
            details={"key": key, "attempts": attempts},
        )


class ValidationFailedError(SafetrailError):
    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class DependencyUnavailableError(SafetrailError):
    def __init__(self, dependency: str, message: str = ""):
        super().__init__(
            message=f"Dependency '{dependency}' unavailable: {message}".rstrip(": "),
            status_code=503,
            error_code="DEPENDENCY_UNAVAILABLE",
            details={"dependency": dependency},
        )


def _error_response(exc: SafetrailError) -> JSONResponse:
    body: dict[str, Any] = {
        "detail": exc.message,
        "error": {"code": exc.error_code, "details": exc.details},
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register domain exception handlers on the FastAPI app."""

    @app.exception_handler(SafetrailError)
    async def handle_domain_error(request: Request, exc: SafetrailError):
        if exc.status_code >= 500:
            logger.error("%s %s failed [%s]: %s", request.method, request.url.path, exc.error_code, exc.message)
        else:
            logger.info("%s %s rejected [%s]: %s", request.method, request.url.path, exc.error_code, exc.message)
        return _error_response(exc)

    @app.exception_handler(OperationalError)
    async def handle_store_error(request: Request, exc: OperationalError):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(DependencyUnavailableError("store", "operation failed"))

    @app.exception_handler(PoolTimeoutError)
    async def handle_store_timeout(request: Request, exc: PoolTimeoutError):
        logger.error("Store timeout on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(DependencyUnavailableError("store", "timed out"))
