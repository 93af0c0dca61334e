"""Global exception handlers for consistent error responses.

Every error leaves the service as ``{"error": {"code", "message", "request_id"}}``:
- ValidationAppError → 400 (client fault)
- StoreAppError → 503 (counting backend down or misbehaving; no decision made)
- ConfigurationAppError, IdentityUnavailableError and anything unexpected → 500
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ratelimiter.core.errors import (
    AppError,
    ConfigurationAppError,
    IdentityUnavailableError,
    StoreAppError,
    ValidationAppError,
)
from ratelimiter.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, StoreAppError):
        return 503
    if isinstance(exc, ValidationAppError):
        return 400
    if isinstance(exc, (ConfigurationAppError, IdentityUnavailableError)):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error with the status code of its family.

    Store errors keep their own ``code`` (``store_unavailable``,
    ``store_timeout``, ``store_bad_reply``...) so clients can tell a backend
    outage from a misbehaving backend, but internal details stay in the logs.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content: dict = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if isinstance(exc, StoreAppError):
        error_content["message"] = "Rate limiting backend is unavailable. Try again later."
    elif exc.details:
        error_content["details"] = exc.details

    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors; never leaks internals."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
