"""Application factory for the FastAPI app.

Builds the limiter from settings before the app exists, so invalid limits
or an unknown backend surface as ConfigurationAppError at startup instead
of on the first request. The lifespan checks the store is reachable and
closes it on shutdown.

Run with:
    uvicorn --factory ratelimiter.core.app_factory:create_app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

import ratelimiter
from ratelimiter.adapters.store import AbstractCountingStore, create_counting_store
from ratelimiter.api.routes import health_router, root_router
from ratelimiter.core.config import Settings, get_settings
from ratelimiter.core.exception_handlers import setup_exception_handlers
from ratelimiter.core.logging import configure_logging
from ratelimiter.core.middleware import request_id_middleware
from ratelimiter.core.openapi import apply_openapi_customizations
from ratelimiter.services.decision_engine import LimiterConfig, RateLimiter

logger = logging.getLogger(__name__)


def _build_lifespan(store: AbstractCountingStore, backend: str):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await store.ping()
        except Exception:
            logger.error("store.unreachable", extra={"backend": backend})
            raise
        logger.info("store.connected", extra={"backend": backend})
        try:
            yield
        finally:
            await store.close()
            logger.info("app.shutdown", extra={"backend": backend})

    return lifespan


def create_app(
    settings: Settings | None = None,
    *,
    store: AbstractCountingStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        store: Counting store to use; built from ``settings.store`` when omitted.

    Returns:
        Configured app with the limiter on ``app.state.rate_limiter``.

    Raises:
        ConfigurationAppError: If settings, limits or the store backend are invalid.
    """
    settings = settings or get_settings()

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log, extra_sensitive_keys=[settings.limiter.token_header_name])

    config = LimiterConfig.from_settings(settings.limiter)
    if store is None:
        store = create_counting_store(settings)
    limiter = RateLimiter(
        config,
        store,
        store_timeout_seconds=settings.limiter.store_timeout_seconds,
    )

    app = FastAPI(
        title="Rate Limiter",
        description=(
            "Admission control per client address or API credential: a fixed "
            "one-second window with a configurable lockout once the limit is exceeded."
        ),
        version=ratelimiter.__version__,
        lifespan=_build_lifespan(store, settings.store.backend),
    )
    app.state.settings = settings
    app.state.rate_limiter = limiter

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(root_router)

    apply_openapi_customizations(app, credential_header_name=config.credential_header_name)

    logger.info(
        "app.configured",
        extra={
            "backend": settings.store.backend,
            "max_per_address": config.max_per_address,
            "max_per_credential": config.max_per_credential,
            "block_s_address": config.block_duration_address,
            "block_s_credential": config.block_duration_credential,
        },
    )
    return app
