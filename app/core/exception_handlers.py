"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept domain and
unexpected errors and return consistent JSON responses with proper HTTP
status codes and traceability.

Design:
- ValidationAppError (e.g. InvalidConfigError) → 400
- Request body validation errors → 400 (admin config payloads)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import AppError, ValidationAppError
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    # Include details only if present (optional structured context)
    if details:
        error_content["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error_content})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    ValidationAppError subclasses are client faults (400); any other
    AppError is reported as a server fault (500).

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = 400 if isinstance(exc, ValidationAppError) else 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    return _error_response(status_code, exc.code, exc.message, dict(exc.details or {}))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed or incomplete request payloads as 400.

    The admin API requires both ``limit`` and ``windowMs``; a missing or
    non-integer field is a client error, not an unprocessable entity.
    """
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})

    logger.warning(
        "request_validation_failed",
        extra={
            "fields": fields,
            "request_path": request.url.path,
        },
    )

    return _error_response(
        400,
        "invalid_request",
        "Both 'limit' and 'windowMs' are required and must be integers",
        {"context": {"fields": fields}},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message
    (no stack traces to the client).

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return _error_response(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
