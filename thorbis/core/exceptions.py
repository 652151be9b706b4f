"""Application-level exceptions and FastAPI exception handlers."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from thorbis.lifecycle.decision import Rejection, RejectionReason
from thorbis.middleware.request_context import new_request_id

logger = logging.getLogger(__name__)

class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        self.headers = headers
        super().__init__(message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str | None = None):
        msg = f"{entity} not found" if not entity_id else f"{entity} '{entity_id}' not found"
        super().__init__(msg, status_code=404, code="NOT_FOUND")

class UnknownEntityTypeError(AppException):
    def __init__(self, entity_type: str):
        super().__init__(
            f"Unknown entity type '{entity_type}'",
            status_code=404,
            code="UNKNOWN_ENTITY_TYPE",
            details={"entity_type": entity_type},
        )

class ForbiddenError(AppException):
    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403, code="FORBIDDEN")

class UnauthorizedError(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")

class VersionConflictError(AppException):
    """The stored entity changed since the caller read it."""

    def __init__(self, entity_id: str, expected_version: int, current_version: int | None = None):
        super().__init__(
            "Entity was modified by another request; retry with fresh data",
            status_code=409,
            code="VERSION_CONFLICT",
            details={
                "entity_id": entity_id,
                "expected_version": expected_version,
                "current_version": current_version,
            },
        )

class ValidationError(AppException):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR", details=details)

class ReferenceNotFoundError(AppException):
    """A payload link points at an entity that does not exist for this tenant."""

    def __init__(self, field: str, value: str, entity_type: str):
        super().__init__(
            f"{entity_type} '{value}' referenced by '{field}' not found",
            status_code=422,
            code="REFERENCE_NOT_FOUND",
            details={"field": field, "value": value, "entity_type": entity_type},
        )

class SchedulingConflictError(AppException):
    def __init__(self, assignee_id: str, conflicting_id: str):
        super().__init__(
            f"'{assignee_id}' is already booked for an overlapping time slot",
            status_code=409,
            code="SCHEDULING_CONFLICT",
            details={"assignee_id": assignee_id, "conflicting_id": conflicting_id},
        )

class RateLimitedError(AppException):
    def __init__(self, retry_after: int, limit: int):
        super().__init__(
            "Rate limit exceeded",
            status_code=429,
            code="RATE_LIMITED",
            details={"limit": limit, "retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )

_REJECTION_STATUS: dict[RejectionReason, int] = {
    RejectionReason.UNKNOWN_STATUS: 422,
    RejectionReason.INVALID_FIELD: 422,
    RejectionReason.PERMISSION_DENIED: 403,
    RejectionReason.OWNERSHIP_REQUIRED: 403,
    RejectionReason.INVALID_TRANSITION: 409,
    RejectionReason.TERMINAL_STATE_IMMUTABLE: 409,
    RejectionReason.FIELDS_LOCKED: 409,
}

class LifecycleRejected(AppException):
    """A lifecycle rejection surfaced over HTTP with its reason code."""

    def __init__(self, rejection: Rejection):
        self.rejection = rejection
        super().__init__(
            rejection.message,
            status_code=_REJECTION_STATUS.get(rejection.reason, 400),
            code=rejection.reason.value,
            details=dict(rejection.details),
        )

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str, details: dict | None = None, request_id: str | None = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    if request_id:
        error["requestId"] = request_id
    return {"error": error}

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or new_request_id()

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.details),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_body("VALIDATION_ERROR", "Invalid request", {"fields": fields}),
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("NOT_FOUND", "Resource not found"),
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.exception("Unhandled error [%s] %s %s", request_id, request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred", request_id=request_id),
            headers={"X-Request-ID": request_id},
        )
