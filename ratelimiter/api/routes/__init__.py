from __future__ import annotations

from ratelimiter.api.routes.health import router as health_router
from ratelimiter.api.routes.root import router as root_router

__all__ = ["health_router", "root_router"]
