"""Field validators for user payloads and identifiers.

Each validator runs its checks in a fixed order and returns the cleaned values
together with a list of field errors, so callers can report every failing
field at once instead of stopping at the first.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from email_validator import EmailNotValidError, validate_email

from app.core.errors import FieldError

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50

NAME_MESSAGE = f"Name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters"
EMAIL_MESSAGE = "Invalid email address"
ID_MESSAGE = "ID must be a positive integer"

_DIGITS = re.compile(r"[0-9]+")


def _field_error(field: str, message: str) -> FieldError:
    return {"field": field, "message": message}


def clean_name(value: Any) -> str | None:
    """Return the trimmed name, or None when it breaks the length rule."""

    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not NAME_MIN_LENGTH <= len(trimmed) <= NAME_MAX_LENGTH:
        return None
    return trimmed


def normalize_email(value: Any) -> str | None:
    """Return the canonical, lower-cased form of an email, or None if invalid.

    Only syntax is checked; no DNS lookups are made.
    """

    if not isinstance(value, str) or not value.strip():
        return None
    try:
        result = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        logger.debug("user_validation.invalid_email", extra={"reason": str(exc)})
        return None
    return result.normalized.lower()


def _validate_fields(
    payload: Mapping[str, Any],
    fields: tuple[str, ...],
) -> tuple[dict[str, str], list[FieldError]]:
    cleaned: dict[str, str] = {}
    errors: list[FieldError] = []

    if "name" in fields:
        name = clean_name(payload.get("name"))
        if name is None:
            errors.append(_field_error("name", NAME_MESSAGE))
        else:
            cleaned["name"] = name

    if "email" in fields:
        email = normalize_email(payload.get("email"))
        if email is None:
            errors.append(_field_error("email", EMAIL_MESSAGE))
        else:
            cleaned["email"] = email

    return cleaned, errors


def validate_user_payload(payload: Mapping[str, Any]) -> tuple[dict[str, str], list[FieldError]]:
    """Validate a full user body (create or replace).

    Args:
        payload: Parsed JSON object from the request.

    Returns:
        Tuple of (cleaned fields, field errors). ``cleaned`` only holds the
        fields that passed.
    """

    return _validate_fields(payload, ("name", "email"))


def validate_user_patch(payload: Mapping[str, Any]) -> tuple[dict[str, str], list[FieldError]]:
    """Validate a partial user body; only fields present are checked.

    Unknown keys are dropped from the cleaned result.
    """

    present = tuple(key for key in ("name", "email") if key in payload)
    return _validate_fields(payload, present)


def validate_user_id(raw: str) -> tuple[int | None, list[FieldError]]:
    """Parse a path identifier that must be an integer >= 1."""

    if not _DIGITS.fullmatch(raw) or int(raw) < 1:
        return None, [_field_error("id", ID_MESSAGE)]
    return int(raw), []
