"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- API Key security scheme (``x-api-key``) attached only to the operations
  the access gate actually guards: mutating methods under the protected prefix

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.auth import API_KEY_HEADER, is_mutating, is_protected_path

TAGS_METADATA = [
    {
        "name": "Users",
        "description": "CRUD and search over the in-memory user collection.",
    },
    {
        "name": "Health",
        "description": "Welcome and liveness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security.

    - Injects components.securitySchemes for API Key auth (header ``x-api-key``)
    - Marks mutating operations under the protected prefix as requiring it
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": API_KEY_HEADER,
                "description": "Required for POST, PUT, PATCH and DELETE on /users.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not is_protected_path(path):
                continue
            for method, method_obj in methods.items():
                if isinstance(method_obj, dict) and is_mutating(method):
                    method_obj["security"] = [{"ApiKeyAuth": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
