"""Rate limiting dependency for FastAPI routes.

This module wires the decision engine into the HTTP layer:

- Identity: the credential header (name from the engine's config) when it is
  present and non-empty, otherwise the client address.
- Denied → 429 with a fixed plain message.
- Engine/store failure → StoreAppError propagates to the global handlers,
  which answer 503. The dependency never turns a failure into an allow.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from ratelimiter.core.errors import IdentityUnavailableError
from ratelimiter.services.decision_engine import RateLimiter, hash_identifier

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_MESSAGE = (
    "you have reached the maximum number of requests or actions allowed within a certain time frame"
)


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the engine created by the app lifespan."""

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("Rate limiter is not initialised; was the app started via create_app()?")
    return limiter


def extract_identity(request: Request, header_name: str) -> tuple[str, bool]:
    """Derive ``(identifier, is_credential)`` for the current request.

    Args:
        request: FastAPI request.
        header_name: Header carrying the API credential.

    Returns:
        Tuple of identifier and whether it is a credential.

    Raises:
        IdentityUnavailableError: When neither a credential nor a client
            address exists (rendered as 500).
    """

    credential = request.headers.get(header_name)
    if credential:
        return credential, True

    if request.client is None or not request.client.host:
        logger.error("rate_limit.no_client_address", extra={"request_path": request.url.path})
        raise IdentityUnavailableError(
            code="client_address_unavailable",
            message="Unable to determine client address",
        )
    return request.client.host, False


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing per-identity rate limits.

    Raises:
        HTTPException: 429 Too Many Requests when the identity is over its
            limit or currently blocked.
        StoreAppError: When the counting store failed (rendered as 503).
    """

    limiter = get_rate_limiter(request)
    identifier, is_credential = extract_identity(request, limiter.config.credential_header_name)

    decision = await limiter.evaluate(identifier, is_credential)
    if decision.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": decision.kind.value,
                "key_hash": hash_identifier(identifier),
                "count": decision.count,
            },
        )
        return

    logger.info(
        "rate_limit.denied",
        extra={
            "key_type": decision.kind.value,
            "key_hash": hash_identifier(identifier),
            "newly_blocked": decision.blocked,
        },
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=RATE_LIMIT_EXCEEDED_MESSAGE,
    )
