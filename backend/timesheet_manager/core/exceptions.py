"""
Application error taxonomy and global exception handlers for the FastAPI application.
Every workflow error is recoverable by the caller and is serialized into a
structured JSON body the UI layer can explain.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from typing import Any

from timesheet_manager.core.integrations.observability import record_exception


logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""
    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource missing."""
    def __init__(self, resource: str = "Resource", details: Any = None):
        super().__init__(f"{resource} not found", status.HTTP_404_NOT_FOUND, details)


class ForbiddenError(AppException):
    """Access policy refused the actor."""
    def __init__(self, message: str = "Access forbidden", details: Any = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class InvalidStateError(AppException):
    """Operation is not legal from the current status."""
    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class EmptySubmissionError(AppException):
    def __init__(self, message: str = "Cannot submit an empty timesheet", details: Any = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class LockedError(AppException):
    """Entry mutation against a timesheet that is not open."""
    def __init__(self, message: str = "Timesheet is locked", details: Any = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class MissingRejectionReasonError(AppException):
    def __init__(self, message: str = "A rejection requires a comment", details: Any = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class AlreadyDecidedError(AppException):
    """No pending approval matches the actor (not authorized or already decided)."""
    def __init__(
        self,
        message: str = "No pending approval for this validator",
        details: Any = None,
    ):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class SecondFactorRequiredError(AppException):
    def __init__(self, message: str = "Second factor verification required", details: Any = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class ManagerCycleError(AppException):
    def __init__(self, message: str = "Manager assignment would create a cycle", details: Any = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "details": exc.details,
            "error_type": type(exc).__name__,
        },
    )

    if exc.status_code >= 500:
        record_exception(exc, request)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "type": type(exc).__name__,
                "message": exc.message,
                "details": exc.details,
                "path": request.url.path,
            }
        },
    )


async def concurrency_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Lost races detected at commit time: a stale optimistic version or a unique
    constraint hit by a concurrent insert. The caller can reload and retry.
    """
    if isinstance(exc, StaleDataError):
        error = InvalidStateError("The resource was modified concurrently; reload and retry")
    else:
        error = InvalidStateError("The change conflicts with a concurrent update; reload and retry")
    return await app_exception_handler(request, error)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "status_code": exc.status_code,
                "path": request.url.path,
            }
        },
        headers=getattr(exc, "headers", None),
    )


def _serialize_validation_errors(errors: list) -> list:
    """Convert validation errors to JSON-serializable format."""
    serialized = []
    for error in errors:
        serialized_error = {}
        for key, value in error.items():
            if key == "ctx" and isinstance(value, dict):
                # ctx may carry exception instances (e.g. ValueError from validators)
                serialized_ctx = {}
                for ctx_key, ctx_value in value.items():
                    if isinstance(ctx_value, Exception):
                        serialized_ctx[ctx_key] = str(ctx_value)
                    else:
                        serialized_ctx[ctx_key] = ctx_value
                serialized_error[key] = serialized_ctx
            elif isinstance(value, Exception):
                serialized_error[key] = str(value)
            else:
                serialized_error[key] = value
        serialized.append(serialized_error)
    return serialized


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    serialized_errors = _serialize_validation_errors(exc.errors())

    logger.warning(
        f"Validation error: {serialized_errors}",
        extra={
            "path": request.url.path,
            "errors": serialized_errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "details": serialized_errors,
                "path": request.url.path,
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        },
    )

    record_exception(exc, request)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "path": request.url.path,
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StaleDataError, concurrency_exception_handler)
    app.add_exception_handler(IntegrityError, concurrency_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
