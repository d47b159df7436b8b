"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, routing and unexpected) and return consistent JSON responses with
proper HTTP status codes and traceability.

Design:
- AppError subclasses → matching HTTP status (400, 401, 404, 409, 429)
- Unmatched routes (404/405 from the router) → 404 with path and method
- Unexpected Exception → 500 (safety net), never crashes the process
- All responses include request_id for log correlation
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictAppError,
    FieldValidationAppError,
    NotFoundAppError,
    RateLimitAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def status_code_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code (default 400)."""
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, ConflictAppError):
        return 409
    if isinstance(exc, RateLimitAppError):
        return 429
    return 400


def app_error_response(exc: AppError) -> JSONResponse:
    """Build the JSON response for a domain error.

    Shared by the exception handler and by pipeline stages that short-circuit
    from middleware, where registered exception handlers do not apply.

    Body:
    - error: Human-readable message
    - code: Machine-readable error code
    - request_id: For log correlation
    - errors: Field errors (validation failures only)
    - details: Optional structured context
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    content: dict[str, Any] = {
        "error": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }
    if isinstance(exc, FieldValidationAppError):
        content["errors"] = exc.errors
    if exc.details:
        content["details"] = exc.details

    headers = exc.headers if isinstance(exc, RateLimitAppError) else None
    return JSONResponse(status_code=status_code, content=content, headers=headers or None)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors raised by dependencies and routes."""
    return app_error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle router-level HTTP errors.

    A path that matches no route (404) and a path whose route does not accept
    the method (405) both fall through to the not-found response.
    """
    if exc.status_code in (404, 405):
        logger.info(
            "route_not_found",
            extra={"request_path": request.url.path, "request_method": request.method},
        )
        return JSONResponse(
            status_code=404,
            content={
                "error": "Route not found",
                "path": request.url.path,
                "method": request.method,
                "request_id": get_request_id(),
            },
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "request_id": get_request_id()},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs full detail (including traceback) server-side. The client gets a
    generic error plus the exception message while APP_EXPOSE_ERROR_DETAILS
    is enabled; never a stack trace.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with status 500.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    message = str(exc) if settings.app.expose_error_details and str(exc) else GENERIC_ERROR_MESSAGE
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": message,
            "request_id": get_request_id(),
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> from app.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
