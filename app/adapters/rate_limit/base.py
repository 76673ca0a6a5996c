"""Rate limiter interfaces.

The HTTP layer should depend on this abstraction (not the concrete
implementation) so the storage backend can be swapped with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    """Limit and sliding window size applied to a key.

    Attributes:
        limit: Max admitted actions per window.
        window_ms: Window duration in milliseconds.
    """

    limit: int
    window_ms: int

    def to_dict(self) -> dict[str, int]:
        return {"limit": self.limit, "windowMs": self.window_ms}


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window for the key.
        remaining: Remaining requests after this one (0 when blocked).
        reset_at_ms: Epoch milliseconds when the oldest counted action ages out.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None


@dataclass(frozen=True)
class KeyUsage:
    """Read-only view of a key's state used by the status endpoint."""

    limit: int
    window_ms: int
    current_usage: int
    remaining: int
    last_access_ms: int


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str, *, now_ms: int | None = None) -> RateLimitResult:
        """Evaluate and, when allowed, record one action for ``key``.

        Args:
            key: Unique identifier (e.g., ``user:alice`` or ``ip:10.0.0.1``).
            now_ms: Evaluation instant; defaults to the limiter clock.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def set_config(self, key: str, limit: int, window_ms: int) -> RateLimitConfig:
        """Create or reconfigure a key without touching its history."""
        raise NotImplementedError

    @abstractmethod
    def set_default_config(self, limit: int, window_ms: int) -> RateLimitConfig:
        """Replace the config used for keys created from now on."""
        raise NotImplementedError

    @abstractmethod
    def get_default_config(self) -> RateLimitConfig:
        raise NotImplementedError

    @abstractmethod
    def snapshot_all(self, *, now_ms: int | None = None) -> dict[str, KeyUsage]:
        """Return current usage for every tracked key without mutating it."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self, *, now_ms: int | None = None) -> int:
        """Evict idle keys with no valid timestamps; return the eviction count."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        """Number of tracked keys."""
        raise NotImplementedError
