"""HTTP middleware for request logging and fault containment.

The logging stage ensures every request/response pair carries a unique
request ID for log correlation:
- Accepts incoming X-Request-ID header or generates a UUID
- Binds request_id, method and path to the logging context for the request
- Logs the request on arrival and on completion (status, duration)
- Injects request_id and duration into response headers
- Releases the logging context once the response is produced

The error boundary sits just inside the logging stage and turns any fault
escaping the later stages into a 500 response, so no request is left
unanswered and the fault is logged with its request_id.

Usage:
    app.middleware("http")(error_boundary_middleware)
    app.middleware("http")(request_logging_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import Request, Response

from app.core.config import settings
from app.core.exception_handlers import general_exception_handler
from app.core.logging import bind_request, release_request

logger = logging.getLogger("app.access")


async def request_logging_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID propagation and access logging.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. This stage never rejects a request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.

    Example:
        >>> # Request arrives with custom ID
        >>> # Headers: {"X-Request-ID": "req-abc-123"}
        >>> # Response includes:
        >>> # {"X-Request-ID": "req-abc-123", "X-Request-Duration-ms": "45.67"}
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    token = bind_request(request_id, request.method, request.url.path)
    start = time.perf_counter()

    logger.info(
        "request.received",
        extra={
            "received_at": datetime.now(timezone.utc).isoformat(),
            "method": request.method,
            "path": request.url.path,
        },
    )

    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        release_request(token)

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def error_boundary_middleware(request: Request, call_next) -> Response:
    """Convert any unhandled fault from the inner stages into a 500 response."""

    try:
        return await call_next(request)
    except Exception as exc:  # noqa: BLE001 - last line of defence
        return await general_exception_handler(request, exc)
