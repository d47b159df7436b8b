"""API key access gate for writes under ``/users``.

Every request other than GET under the protected prefix must carry an
``x-api-key`` header matching one of the configured keys. GET always
passes. Keys are managed via the ``APP_API_KEYS`` env var (comma-separated)
and the gate can be switched off with
``APP_API_KEY_REQUIRED=false``.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response

from app.core.config import settings
from app.core.errors import AuthenticationAppError
from app.core.exception_handlers import app_error_response
from app.core.logging import fingerprint

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
OPEN_METHOD = "GET"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Args:
        keys_string: Comma-separated string of API keys, or None.

    Returns:
        Set of trimmed, non-empty API keys.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ") == {"key1", "key2", "key3"}
        True
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def is_mutating(method: str) -> bool:
    return method.upper() in MUTATING_METHODS


def requires_api_key(method: str) -> bool:
    """Return True for any method the gate does not let through unchecked."""
    return method.upper() != OPEN_METHOD


def is_protected_path(path: str, prefix: str | None = None) -> bool:
    """Return True for ``prefix`` itself and any path below it.

    ``/users`` and ``/users/7`` match; ``/usersettings`` does not.
    """
    prefix = (prefix or settings.app.protected_prefix).rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def validate_api_key(provided_key: str | None) -> None:
    """Validate that the provided API key matches a configured key.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_key: API key taken from the request, possibly missing.

    Raises:
        AuthenticationAppError: If the key is missing or invalid, or no keys
            are configured while the gate is enabled.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "auth.rejected",
            extra={"reason": "api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable the gate with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.rejected", extra={"reason": "missing_api_key"})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide the x-api-key header.",
        )

    if provided_key not in valid_keys:
        logger.warning(
            "auth.rejected",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": fingerprint(provided_key),
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


def check_access(method: str, header_value: str | None) -> bool:
    """Return True if a request with ``method`` and key ``header_value`` may pass."""
    if not requires_api_key(method):
        return True
    try:
        validate_api_key(header_value)
    except AuthenticationAppError:
        return False
    return True


async def access_gate_middleware(request: Request, call_next) -> Response:
    """Reject non-GET requests under the protected prefix without a valid key.

    Runs before rate limiting, validation and routing, so an unauthorized
    request never reaches the store (or consumes rate-limit budget).
    """
    if not is_protected_path(request.url.path) or not requires_api_key(request.method):
        return await call_next(request)

    try:
        validate_api_key(request.headers.get(API_KEY_HEADER))
    except AuthenticationAppError as exc:
        return app_error_response(exc)

    logger.debug("auth.accepted")
    return await call_next(request)
