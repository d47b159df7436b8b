"""Request validation stage for user routes.

FastAPI dependencies that read the JSON body explicitly and run the user
validators before a route handler touches the store. Field rule failures are
raised as FieldValidationAppError (400 with an ``errors`` list); a body that
is not a JSON object is a plain ValidationAppError.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import Depends, Request

from app.core.errors import FieldError, FieldValidationAppError, ValidationAppError
from app.utils.user_validators import (
    validate_user_id,
    validate_user_patch,
    validate_user_payload,
)

logger = logging.getLogger(__name__)


def _raise_field_errors(errors: list[FieldError], *, stage: str) -> None:
    logger.info(
        "validation.failed",
        extra={"stage": stage, "fields": [error["field"] for error in errors]},
    )
    raise FieldValidationAppError(
        code="validation_failed",
        message="Validation failed",
        errors=errors,
    )


async def read_json_object(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    An empty body is treated as an empty object so PATCH can report
    "nothing to update" instead of a parse error.

    Raises:
        ValidationAppError: If the body is not valid JSON or not an object.
    """
    raw = await request.body()
    if not raw.strip():
        return {}

    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be valid JSON",
        ) from exc

    if not isinstance(data, dict):
        raise ValidationAppError(
            code="invalid_body",
            message="Request body must be a JSON object",
        )
    return data


def validated_user_id(user_id: str) -> int:
    """Validate the ``{user_id}`` path parameter."""
    parsed, errors = validate_user_id(user_id)
    if errors:
        _raise_field_errors(errors, stage="path")
    return parsed  # type: ignore[return-value]


async def validated_user_payload(
    payload: Annotated[dict[str, Any], Depends(read_json_object)],
) -> dict[str, str]:
    """Validate a full user body and return the cleaned fields."""
    cleaned, errors = validate_user_payload(payload)
    if errors:
        _raise_field_errors(errors, stage="body")
    return cleaned


async def validated_user_patch(
    payload: Annotated[dict[str, Any], Depends(read_json_object)],
) -> dict[str, str]:
    """Validate the fields present in a partial user body."""
    cleaned, errors = validate_user_patch(payload)
    if errors:
        _raise_field_errors(errors, stage="body")
    return cleaned
