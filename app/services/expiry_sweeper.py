"""Periodic eviction of idle rate limit entries.

The sweeper bounds memory growth of the key space (IP churn, abusive
distinct-key generation). It runs as an asyncio task owned by the app
lifespan and is cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Call ``limiter.sweep()`` every ``interval_seconds``.

    Attributes:
        interval_seconds: Delay between two sweeps.
    """

    def __init__(self, limiter: AbstractRateLimiter, *, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._limiter = limiter
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Run a single sweep and log how many keys were evicted."""

        removed = self._limiter.sweep()
        logger.info(
            "rate_limit.sweep",
            extra={
                "evicted": removed,
                "tracked_keys": len(self._limiter),
            },
        )
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.run_once()
            except Exception:
                logger.exception("rate_limit.sweep_failed")

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (idempotent)."""

        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-expiry-sweeper")
        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self.interval_seconds},
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""

        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("rate_limit.sweeper_stopped")
