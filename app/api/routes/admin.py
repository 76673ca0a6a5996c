"""Administrative endpoints for rate limit configuration and status.

These routes are never rate limited. They are not authenticated either:
expose them only on a trusted network.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.rate_limit import get_rate_limiter
from app.schemas.rate_limit import (
    DefaultConfigUpdateResponse,
    KeyConfigUpdateResponse,
    KeyStatus,
    RateLimitConfigBody,
    StatusResponse,
)
from app.utils.time_format import ms_to_iso8601, utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])

LimiterDep = Annotated[AbstractRateLimiter, Depends(get_rate_limiter)]


@router.get("/config/default", response_model=RateLimitConfigBody)
def get_default_config(limiter: LimiterDep) -> RateLimitConfigBody:
    """Return the config applied to keys seen for the first time."""

    config = limiter.get_default_config()
    return RateLimitConfigBody(limit=config.limit, window_ms=config.window_ms)


@router.post("/config/default", response_model=DefaultConfigUpdateResponse)
def update_default_config(
    body: RateLimitConfigBody,
    limiter: LimiterDep,
) -> DefaultConfigUpdateResponse:
    """Replace the default config.

    Existing keys keep their own limit and window; only keys created after
    this call use the new values.

    Raises:
        InvalidConfigError: 400 when limit or windowMs is not positive.
    """

    config = limiter.set_default_config(body.limit, body.window_ms)
    logger.info(
        "rate_limit.default_config_updated",
        extra={"limit": config.limit, "window_ms": config.window_ms},
    )
    return DefaultConfigUpdateResponse(
        message="Default configuration updated",
        config=RateLimitConfigBody(limit=config.limit, window_ms=config.window_ms),
    )


@router.post("/config/{key}", response_model=KeyConfigUpdateResponse)
def update_key_config(
    key: str,
    body: RateLimitConfigBody,
    limiter: LimiterDep,
) -> KeyConfigUpdateResponse:
    """Create or reconfigure one key (e.g. ``user:alice`` or ``ip:10.0.0.1``).

    The key's request history is kept, so lowering its limit below current
    usage throttles it until old requests leave the window.

    Raises:
        InvalidConfigError: 400 when limit or windowMs is not positive.
    """

    config = limiter.set_config(key, body.limit, body.window_ms)
    logger.info(
        "rate_limit.key_config_updated",
        extra={
            "rate_limit_key": key,
            "limit": config.limit,
            "window_ms": config.window_ms,
        },
    )
    return KeyConfigUpdateResponse(
        message=f"Rate limit updated for key: {key}",
        key=key,
        limit=config.limit,
        window_ms=config.window_ms,
    )


@router.get("/status", response_model=StatusResponse)
def get_status(limiter: LimiterDep) -> StatusResponse:
    """Return the default config and the live usage of every tracked key."""

    default = limiter.get_default_config()
    snapshot = limiter.snapshot_all()
    active = {
        key: KeyStatus(
            limit=usage.limit,
            window_ms=usage.window_ms,
            current_usage=usage.current_usage,
            remaining=usage.remaining,
            last_access=ms_to_iso8601(usage.last_access_ms),
        )
        for key, usage in snapshot.items()
    }
    return StatusResponse(
        default_config=RateLimitConfigBody(limit=default.limit, window_ms=default.window_ms),
        active_limits=active,
        total_keys=len(active),
        timestamp=utc_now_iso(),
    )
