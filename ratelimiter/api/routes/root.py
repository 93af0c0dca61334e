from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ratelimiter.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Protected"], dependencies=[Depends(enforce_rate_limit)])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    """Sample protected endpoint used to exercise the limiter end to end."""

    return "Hello! This is a rate limiter test endpoint.\n"
