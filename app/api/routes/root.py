from __future__ import annotations

from fastapi import APIRouter

from app.schemas.rate_limit import RateLimitExceededResponse, RootResponse
from app.utils.time_format import utc_now_iso

router = APIRouter(tags=["Service"])


@router.get(
    "/",
    response_model=RootResponse,
    responses={429: {"model": RateLimitExceededResponse}},
)
def root() -> RootResponse:
    """Rate limited endpoint representing the protected service."""

    return RootResponse(message="OK", timestamp=utc_now_iso())
