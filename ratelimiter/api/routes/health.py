from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe; not rate limited so load balancers never get a 429."""

    return {"status": "ok"}
