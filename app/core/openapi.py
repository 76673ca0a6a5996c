"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- X-RateLimit-* response headers and the 429 answer on every operation the
  rate limit middleware applies to

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.rate_limit import is_exempt_path

RATE_LIMIT_HEADERS: Dict[str, Dict[str, Any]] = {
    "X-RateLimit-Limit": {
        "description": "Requests admitted per sliding window for this key.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window after this one.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "ISO-8601 instant when the oldest counted request ages out.",
        "schema": {"type": "string", "format": "date-time"},
    },
    "X-RateLimit-Key": {
        "description": "Key the request was counted against (user:<id> or ip:<addr>).",
        "schema": {"type": "string"},
    },
}

_TAGS = [
    {
        "name": "Service",
        "description": "Rate limited endpoints of the protected service.",
    },
    {
        "name": "Admin",
        "description": "Unauthenticated rate limit configuration and status.",
    },
    {
        "name": "Health",
        "description": "Liveness checks (never rate limited).",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document rate limiting.

    - Adds tags metadata if not present
    - Adds X-RateLimit-* headers to every response of limited operations
    - Adds a 429 response with Retry-After to limited operations
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if is_exempt_path(path):
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                too_many = responses.setdefault(
                    "429", {"description": "Too Many Requests"}
                )
                too_many.setdefault("headers", {})["Retry-After"] = {
                    "description": "Seconds until a request may be admitted again.",
                    "schema": {"type": "integer"},
                }
                for response in responses.values():
                    response.setdefault("headers", {}).update(RATE_LIMIT_HEADERS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
