"""OpenAPI customization.

Documents the credential header that switches a client from per-address to
per-credential limiting, and the 429/503 answers added by the limiter.
The header name is only known at startup, so it is injected here rather
than declared on the dependency.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from ratelimiter.core.rate_limit import RATE_LIMIT_EXCEEDED_MESSAGE


def apply_openapi_customizations(app: FastAPI, *, credential_header_name: str) -> None:
    """Patch FastAPI's OpenAPI generation with limiter metadata.

    - Adds an optional API key security scheme for ``credential_header_name``
    - Documents 429 and 503 on every rate limited operation
    - Leaves ``/health`` untouched (it is never limited)
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "CredentialHeader",
            {
                "type": "apiKey",
                "in": "header",
                "name": credential_header_name,
                "description": (
                    "Optional. When present, limits apply per credential instead of "
                    "per client address."
                ),
            },
        )

        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/health"):
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                # Empty requirement keeps the header optional
                method_obj.setdefault("security", [{"CredentialHeader": []}, {}])
                responses = method_obj.setdefault("responses", {})
                responses.setdefault("429", {"description": RATE_LIMIT_EXCEEDED_MESSAGE})
                responses.setdefault(
                    "503", {"description": "Rate limiting backend unavailable; no decision made"}
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
