from __future__ import annotations

import time

from fastapi import APIRouter, Request

from app.schemas.rate_limit import HealthResponse
from app.utils.time_format import utc_now_iso

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Informational only: it never touches the limiter and is never rate
    limited. Used by load balancers and monitoring systems.

    Returns:
        HealthResponse: status, seconds since startup and current time.
    """

    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return HealthResponse(
        status="healthy",
        uptime=round(time.monotonic() - started_at, 3),
        timestamp=utc_now_iso(),
    )
