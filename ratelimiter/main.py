"""Process entry point: load settings, build the app, serve it with uvicorn."""

from __future__ import annotations

import logging
import sys

import uvicorn

from ratelimiter.core.app_factory import create_app
from ratelimiter.core.config import load_settings
from ratelimiter.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)


def run() -> None:
    """Start the HTTP server; exit with status 2 on invalid configuration."""

    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigurationAppError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("startup.invalid_configuration: %s", exc.message, extra={"error_code": exc.code})
        sys.exit(2)

    logger.info("server.starting", extra={"host": settings.server.host, "port": settings.server.port})
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
        timeout_keep_alive=120,
        timeout_graceful_shutdown=30,
    )
    logger.info("server.stopped")


if __name__ == "__main__":
    run()
