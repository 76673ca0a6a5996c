"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory limiter and later migrate to a shared store without changing
the HTTP layer.
"""

from __future__ import annotations

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    KeyUsage,
    RateLimitConfig,
    RateLimitResult,
)
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "KeyUsage",
    "RateLimitConfig",
    "RateLimitResult",
]
