"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: every key carries its own lock, and a short-lived store lock
  guards insertion into and removal from the key map and the default config.
  Lookups of existing keys take no store lock. The store lock is never held
  while waiting for an entry lock.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    KeyUsage,
    RateLimitConfig,
    RateLimitResult,
)
from app.core.errors import InvalidConfigError


def validate_config(limit: Any, window_ms: Any) -> RateLimitConfig:
    """Validate a limit/window pair before it reaches any limiter state.

    Args:
        limit: Maximum admitted actions per window.
        window_ms: Window duration in milliseconds.

    Returns:
        The validated RateLimitConfig.

    Raises:
        InvalidConfigError: If either value is not a positive integer.
    """

    for name, label, value in (
        ("limit", "Limit", limit),
        ("windowMs", "Window duration", window_ms),
    ):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigError(
                code="invalid_config",
                message=f"{label} must be an integer",
                details={"field": name, "actual_value": repr(value)},
            )
        if value <= 0:
            raise InvalidConfigError(
                code="invalid_config",
                message=f"{label} must be greater than 0",
                details={"field": name, "min_value": 1, "actual_value": value},
            )
    return RateLimitConfig(limit=limit, window_ms=window_ms)


@dataclass
class RateLimitEntry:
    """Per-key rate limit state.

    ``timestamps`` holds admitted-action instants (epoch ms) in insertion
    order. A timestamp is valid while ``now - ts < window_ms``.
    """

    limit: int
    window_ms: int
    last_access_ms: int
    timestamps: deque[int] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    evicted: bool = False

    def prune(self, now_ms: int) -> None:
        cutoff = now_ms - self.window_ms
        while self.timestamps and self.timestamps[0] <= cutoff:
            self.timestamps.popleft()

    def count_valid(self, now_ms: int) -> int:
        cutoff = now_ms - self.window_ms
        return sum(1 for ts in self.timestamps if ts > cutoff)


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping a sliding window of admitted timestamps per key.

    The window boundary moves continuously with the current time, so a key
    regains one unit of quota each time its oldest counted action ages out
    instead of getting its whole budget back at a fixed boundary.

    Keys are created lazily from the default config in effect at creation
    time. Idle keys are only removed by ``sweep``.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Default maximum number of admitted actions per window.
            window_ms: Default window size in milliseconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            InvalidConfigError: If limit or window_ms are invalid.
        """

        self._default = validate_config(limit, window_ms)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, RateLimitEntry] = {}

    def _now_ms(self, now_ms: int | None) -> int:
        if now_ms is not None:
            return now_ms
        return int(self._clock() * 1000)

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key or not isinstance(key, str):
            raise ValueError("key must be a non-empty string")

    def _get_or_create(
        self,
        key: str,
        now_ms: int,
        seed: RateLimitConfig | None = None,
    ) -> tuple[RateLimitEntry, bool]:
        """Return the existing entry, or insert-if-absent under the store lock.

        Args:
            key: Rate limit key.
            now_ms: Creation instant, used as the initial last access.
            seed: Config for a new entry; the current default when omitted.

        Returns:
            Tuple of (entry, created).
        """

        entry = self._entries.get(key)
        if entry is not None:
            return entry, False

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                return entry, False
            config = seed or self._default
            entry = RateLimitEntry(
                limit=config.limit,
                window_ms=config.window_ms,
                last_access_ms=now_ms,
            )
            self._entries[key] = entry
            return entry, True

    def get_or_create(self, key: str, *, now_ms: int | None = None) -> RateLimitEntry:
        """Return the entry for key, creating it from the default config.

        The returned object is live state; mutate it only while holding
        ``entry.lock`` and after checking ``entry.evicted``.
        """

        self._validate_key(key)
        entry, _ = self._get_or_create(key, self._now_ms(now_ms))
        return entry

    def check(self, key: str, *, now_ms: int | None = None) -> RateLimitResult:
        """Evaluate the sliding window for key and record the action if allowed.

        Args:
            key: Unique identifier for rate limiting.
            now_ms: Evaluation instant in epoch milliseconds.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """

        self._validate_key(key)
        now = self._now_ms(now_ms)

        while True:
            entry, _ = self._get_or_create(key, now)
            with entry.lock:
                # Swept between lookup and lock: retry on a fresh entry.
                if entry.evicted:
                    continue
                return self._evaluate_locked(entry, now)

    @staticmethod
    def _evaluate_locked(entry: RateLimitEntry, now: int) -> RateLimitResult:
        entry.last_access_ms = now
        entry.prune(now)

        timestamps = entry.timestamps
        if timestamps:
            reset_at = timestamps[0] + entry.window_ms
        else:
            reset_at = now + entry.window_ms

        if len(timestamps) < entry.limit:
            timestamps.append(max(now, timestamps[-1]) if timestamps else now)
            return RateLimitResult(
                allowed=True,
                limit=entry.limit,
                remaining=entry.limit - len(timestamps),
                reset_at_ms=reset_at,
                retry_after_seconds=None,
            )

        retry_after = max(0, int(math.ceil((reset_at - now) / 1000)))
        return RateLimitResult(
            allowed=False,
            limit=entry.limit,
            remaining=0,
            reset_at_ms=reset_at,
            retry_after_seconds=retry_after,
        )

    def set_config(
        self,
        key: str,
        limit: int,
        window_ms: int,
        *,
        now_ms: int | None = None,
    ) -> RateLimitConfig:
        """Create or reconfigure a key.

        Existing timestamps and last access are preserved, so lowering the
        limit below the current usage denies checks until history ages out.

        Raises:
            InvalidConfigError: If limit or window_ms are not positive integers.
            ValueError: If key is empty.
        """

        config = validate_config(limit, window_ms)
        self._validate_key(key)
        now = self._now_ms(now_ms)

        while True:
            entry, created = self._get_or_create(key, now, seed=config)
            if created:
                return config
            with entry.lock:
                if entry.evicted:
                    continue
                entry.limit = config.limit
                entry.window_ms = config.window_ms
                return config

    def set_default_config(self, limit: int, window_ms: int) -> RateLimitConfig:
        """Replace the default config; existing keys keep their own config.

        Raises:
            InvalidConfigError: If limit or window_ms are not positive integers.
        """

        config = validate_config(limit, window_ms)
        with self._lock:
            self._default = config
        return config

    def get_default_config(self) -> RateLimitConfig:
        with self._lock:
            return self._default

    def snapshot_all(self, *, now_ms: int | None = None) -> dict[str, KeyUsage]:
        """Compute valid usage for every key without pruning stored history."""

        now = self._now_ms(now_ms)
        with self._lock:
            items = list(self._entries.items())

        snapshot: dict[str, KeyUsage] = {}
        for key, entry in items:
            with entry.lock:
                if entry.evicted:
                    continue
                usage = entry.count_valid(now)
                snapshot[key] = KeyUsage(
                    limit=entry.limit,
                    window_ms=entry.window_ms,
                    current_usage=usage,
                    remaining=max(0, entry.limit - usage),
                    last_access_ms=entry.last_access_ms,
                )
        return snapshot

    def sweep(self, *, now_ms: int | None = None) -> int:
        """Prune every key and evict those that are empty and idle.

        A key is evicted iff it has no valid timestamps and has not been
        accessed for more than twice its window. Keys whose lock is held by
        a concurrent operation are skipped and examined again next sweep.

        Returns:
            Number of evicted keys.
        """

        now = self._now_ms(now_ms)
        with self._lock:
            items = list(self._entries.items())

        removed = 0
        for key, entry in items:
            # A key being checked right now is active: leave it for a later sweep.
            if not entry.lock.acquire(blocking=False):
                continue
            try:
                if entry.evicted:
                    continue
                entry.prune(now)
                if entry.timestamps:
                    continue
                if now - entry.last_access_ms <= 2 * entry.window_ms:
                    continue
                with self._lock:
                    if self._entries.get(key) is not entry:
                        continue
                    entry.evicted = True
                    del self._entries[key]
                removed += 1
            finally:
                entry.lock.release()
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
