"""OpenAPI customization.

Adds the ``X-API-Key`` security scheme to the generated schema and marks
only the admin operations as requiring it, plus tag descriptions and the
429 response shared by every rate limited operation.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

ADMIN_PREFIX = "/api/admin"

TAGS_METADATA = [
    {"name": "Version", "description": "Cached service version for update checks."},
    {"name": "Admin", "description": "Cache and rate limiter inspection and reset."},
    {"name": "Health", "description": "Liveness checks."},
]

RATE_LIMITED_RESPONSE = {
    "description": "Rate limit exceeded",
    "content": {
        "application/json": {
            "example": {
                "error": "Too many requests",
                "message": "Rate limit exceeded. Try again in 42 seconds.",
                "retryAfter": 42,
            }
        }
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add security and tags."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin API key via the X-API-Key header.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path.startswith(ADMIN_PREFIX):
                    method_obj["security"] = [{"ApiKeyAuth": []}]
                if path != "/health":
                    method_obj.setdefault("responses", {}).setdefault("429", RATE_LIMITED_RESPONSE)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
