"""
Exception handlers for the HTTP surface.
Every error leaves the API as ``{"error": {"code", "message", "type", ...}}``
with secrets scrubbed from the message.
"""

import logging
import re
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from allocation.exceptions import (
    AllocationError,
    CopyConflictError,
    CopyNotFoundError,
    ExaminerInactiveError,
    ExaminerNotFoundError,
    InvalidCopyStateError,
    InvalidThresholdsError,
    JobAlreadyRunningError,
    NotCopyHolderError,
    StatsInconsistencyError,
)

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be returned or logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r"://[^:/\s]+:[^@/\s]+@"),  # credentials in connection URLs
]

# Most specific first
ALLOCATION_ERROR_STATUS: list[tuple[type[AllocationError], int]] = [
    (InvalidThresholdsError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CopyConflictError, status.HTTP_409_CONFLICT),
    (JobAlreadyRunningError, status.HTTP_409_CONFLICT),
    (CopyNotFoundError, status.HTTP_404_NOT_FOUND),
    (ExaminerNotFoundError, status.HTTP_404_NOT_FOUND),
    (ExaminerInactiveError, status.HTTP_409_CONFLICT),
    (InvalidCopyStateError, status.HTTP_409_CONFLICT),
    (NotCopyHolderError, status.HTTP_409_CONFLICT),
    (StatsInconsistencyError, status.HTTP_409_CONFLICT),
]


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def status_for(exc: AllocationError) -> int:
    for error_type, status_code in ALLOCATION_ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_response(
    request: Request, status_code: int, code: str, message: str, error_type: str, **extra: Any
) -> JSONResponse:
    error = {
        "code": code,
        "message": sanitize_error_message(message),
        "type": error_type,
        "path": str(request.url.path),
        "method": request.method,
        **extra,
    }
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        error["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": error})


def setup_error_handlers(app):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AllocationError)
    async def allocation_exception_handler(request: Request, exc: AllocationError):
        status_code = status_for(exc)
        logger.warning(
            f"Allocation error: {request.method} {request.url.path} - "
            f"{exc.code}: {sanitize_error_message(str(exc))}"
        )
        return error_response(
            request,
            status_code,
            exc.code,
            str(exc),
            type(exc).__name__,
            retryable=exc.retryable,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(
            request, exc.status_code, "HTTP_EXCEPTION", str(exc.detail), "HTTPException"
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": sanitize_error_message(error["msg"]),
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning(f"Validation error: {request.method} {request.url.path} - {errors}")
        return error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            "RequestValidationError",
            details=errors,
        )

    @app.exception_handler(OperationalError)
    async def database_unavailable_handler(request: Request, exc: OperationalError):
        logger.error(f"Database operational error: {request.method} {request.url.path}", exc_info=True)
        return error_response(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            "OperationalError",
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy error: {request.method} {request.url.path}", exc_info=True)
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "DATABASE_ERROR",
            "A database error occurred",
            type(exc).__name__,
        )

    @app.exception_handler(RedisError)
    async def redis_exception_handler(request: Request, exc: RedisError):
        logger.error(f"Redis error: {request.method} {request.url.path}", exc_info=True)
        return error_response(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "LOCK_SERVICE_ERROR",
            "Job lock service temporarily unavailable",
            type(exc).__name__,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {request.method} {request.url.path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=True,
        )
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            "InternalServerError",
        )
