"""Application factory for the FastAPI app.

Centralizes app construction (limiter store, sweeper, middleware, handlers,
routers) so every app instance owns its own rate limit state. Tests build
isolated apps with an injected limiter and clock.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.api.routes import admin_router, health_router, root_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import rate_limit_middleware
from app.services.expiry_sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the expiry sweeper on startup and stop it on shutdown.

    Uvicorn turns SIGINT/SIGTERM into a graceful shutdown, which runs the
    code after ``yield``.
    """

    sweeper: ExpirySweeper = app.state.sweeper
    limiter: AbstractRateLimiter = app.state.limiter
    default = limiter.get_default_config()

    sweeper.start()
    logger.info(
        "app.startup",
        extra={
            "default_limit": default.limit,
            "default_window_ms": default.window_ms,
            "sweep_interval_s": sweeper.interval_seconds,
        },
    )
    try:
        yield
    finally:
        await sweeper.stop()
        logger.info("app.shutdown", extra={"tracked_keys": len(limiter)})


def create_app(
    *,
    limiter: AbstractRateLimiter | None = None,
    sweep_interval_seconds: float | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Limiter store to use; a fresh in-memory store seeded from
            settings when omitted.
        sweep_interval_seconds: Override for the expiry sweep interval.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    if limiter is None:
        limiter = InMemorySlidingWindowRateLimiter(
            limit=settings.app.rate_limit_default_limit,
            window_ms=settings.app.rate_limit_default_window_ms,
        )
    sweeper = ExpirySweeper(
        limiter,
        interval_seconds=sweep_interval_seconds
        or settings.app.rate_limit_sweep_interval_seconds,
    )

    app = FastAPI(
        title="Sliding Window Rate Limiter",
        description=(
            "In-process, per-key sliding-window rate limiting exposed through "
            "HTTP middleware, with an administrative API to tune the default "
            "and per-key limits and inspect live usage."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    app.state.sweeper = sweeper
    app.state.started_at = time.monotonic()

    # Middleware (last registered runs first): request id wraps rate limiting
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(root_router)
    app.include_router(admin_router, prefix=settings.app.admin_prefix.rstrip("/"))
    app.include_router(health_router)

    # OpenAPI customizations (tags, rate limit headers)
    apply_openapi_customizations(app)

    return app
