"""OpenAPI customization utilities.

The admission gate lives in middleware, so FastAPI cannot infer the 429 it
may return. This helper documents that response on every gated operation and
adds tags metadata, keeping documentation concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable

from fastapi import FastAPI

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded (or the rate limiter is unavailable).",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the client's window may expire.",
            "schema": {"type": "integer"},
        }
    },
    "content": {"text/plain": {"schema": {"type": "string", "example": "Rate limit exceeded"}}},
}


def apply_openapi_customizations(app: FastAPI, *, exempt_paths: Iterable[str] = ()) -> None:
    """Patch FastAPI's OpenAPI generation to document the admission gate.

    - Adds a ``429`` response to every operation whose path is gated
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi
    exempt = frozenset(exempt_paths)

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Root",
                "description": "Sample host endpoint behind the admission gate.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path in exempt:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault("429", _TOO_MANY_REQUESTS)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
