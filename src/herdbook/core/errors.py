"""Request-level error taxonomy and the FastAPI handlers that render it.

Every rejection leaves the service as ``{"success": false, "error": ...,
"details": ...}`` with the status code of its class:

- AuthenticationError (401): no valid caller identity
- TenantResolutionError (404): authenticated, but no live tenant bound
- ValidationError (400): malformed/missing/out-of-enum input, names fields
- NotFoundError (404): referenced ids do not resolve in the caller's tenant
- TransientStoreError (500): storage unavailable or timed out

Per-entity batch failures are not exceptions; they are recorded inline in
the batch result.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

logger = structlog.get_logger(__name__)


class HerdbookError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal server error"

    def __init__(self, error: str | None = None, details: Any = None) -> None:
        self.error = error or self.error
        self.details = details
        super().__init__(self.error)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationError(HerdbookError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"


class TenantResolutionError(HerdbookError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Tenant not found"


class ValidationError(HerdbookError):
    """Invalid input. ``fields`` maps each offending field to a message."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation failed"

    def __init__(self, fields: dict[str, str], error: str | None = None) -> None:
        self.fields = fields
        super().__init__(
            error=error,
            details=[{"field": name, "message": msg} for name, msg in fields.items()],
        )


class NotFoundError(HerdbookError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"

    def __init__(self, error: str | None = None, missing_ids: list[str] | None = None) -> None:
        self.missing_ids = missing_ids or []
        details = {"missingIds": self.missing_ids} if missing_ids is not None else None
        super().__init__(error=error, details=details)


class TransientStoreError(HerdbookError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Storage temporarily unavailable"


class ServiceUnavailableError(HerdbookError):
    """A collaborator was not initialized at startup."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Service unavailable"


# ── Handlers ────────────────────────────────────────────────────────────────


def _field_name(loc: tuple[Any, ...]) -> str:
    # Drop the "query"/"body" prefix FastAPI puts on every location.
    parts = [str(p) for p in loc if p not in ("query", "body", "path")]
    return ".".join(parts) or "request"


async def herdbook_error_handler(request: Request, exc: HerdbookError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request.failed", path=request.url.path, error=exc.error, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: dict[str, str] = {}
    for err in exc.errors():
        fields.setdefault(_field_name(tuple(err.get("loc", ()))), err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ValidationError(fields).to_body(),
    )


async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("store.unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=TransientStoreError.status_code,
        content=TransientStoreError(details=type(exc).__name__).to_body(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers rendering the taxonomy above."""
    app.add_exception_handler(HerdbookError, herdbook_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(OperationalError, store_error_handler)
    app.add_exception_handler(InterfaceError, store_error_handler)
    app.add_exception_handler(TimeoutError, store_error_handler)
