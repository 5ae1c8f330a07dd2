"""GeStock exceptions and the FastAPI handlers that render them.

Every error leaves the API as ``{"error": {"code", "message"[, "details"]}}``.
Snapshot failures carry their own status and error code; Scope Store and
database outages map to 503.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from gestock.store.base import StoreError

logger = logging.getLogger(__name__)

# Starlette's name for this constant differs between releases
UNPROCESSABLE = 422


class GeStockException(Exception):
    """Base exception for GeStock application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class SnapshotParseError(GeStockException):
    """The snapshot document is malformed. Raised before any backend call."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=UNPROCESSABLE,
            error_code="SNAPSHOT_PARSE_ERROR",
        )


class NothingToExportError(GeStockException):
    """The source scope has no providers, so there is nothing to export."""

    def __init__(self, scope_label: str):
        super().__init__(
            message=f"No providers to export for {scope_label}",
            status_code=UNPROCESSABLE,
            error_code="NOTHING_TO_EXPORT",
        )


class BackupNotFoundError(GeStockException):
    def __init__(self, slot_key: str):
        super().__init__(
            message=f"Backup not found: {slot_key}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="BACKUP_NOT_FOUND",
        )


class OperationInProgressError(GeStockException):
    """Another import/restore/copy is already writing to this scope."""

    def __init__(self, scope_label: str):
        super().__init__(
            message=f"Another snapshot operation is running on {scope_label}",
            status_code=status.HTTP_409_CONFLICT,
            error_code="OPERATION_IN_PROGRESS",
        )


def error_body(code: str, message: str, details: dict | None = None) -> dict:
    """``{"error": {"code", "message"[, "details"]}}``, the one error shape."""
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


def _respond(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, details))


def _where(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def gestock_exception_handler(request: Request, exc: GeStockException) -> JSONResponse:
    logger.warning(
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, **_where(request)},
    )
    return _respond(exc.status_code, exc.error_code, exc.message)


async def http_exception_handler(
    request: Request,
    exc: HTTPException | StarletteHTTPException,
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_where(request))
    return _respond(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError | ValidationError,
) -> JSONResponse:
    """Request bodies and query parameters that fail pydantic validation."""
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {len(errors)} field(s)", extra=_where(request))
    return _respond(
        UNPROCESSABLE,
        "VALIDATION_ERROR",
        "Validation error",
        {"errors": errors},
    )


async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    """A Scope Store failure outside the best-effort pipeline (e.g. provider create)."""
    logger.error(f"Store error on {request.url.path}: {exc}", extra={"table": exc.table, **_where(request)})
    return _respond(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "STORE_ERROR",
        f"Store unavailable for {exc.table}. Please try again.",
    )


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"Database unavailable on {request.url.path}: {exc}", extra=_where(request))
    return _respond(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DATABASE_UNAVAILABLE",
        "Database temporarily unavailable. Please try again.",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", extra=_where(request), exc_info=True)
    return _respond(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred. Please try again later.",
    )


def register_exception_handlers(app) -> None:
    """Wire every handler above into the FastAPI app."""
    handlers = (
        (GeStockException, gestock_exception_handler),
        (StoreError, store_exception_handler),
        (HTTPException, http_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (ValidationError, validation_exception_handler),
        (OperationalError, operational_exception_handler),
        (Exception, general_exception_handler),
    )
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)
