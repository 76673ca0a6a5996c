"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING environment variable so no .env file is loaded, and
provides a deterministic clock plus an isolated app per test.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.app_factory import create_app


class FakeClock:
    """Deterministic clock returning UNIX seconds, advanced in milliseconds."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def time(self) -> float:
        return self.now_ms / 1000

    def advance_ms(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemorySlidingWindowRateLimiter:
    """Store with the default config used across the scenarios (3 per second)."""
    return InMemorySlidingWindowRateLimiter(limit=3, window_ms=1000, clock=clock.time)


@pytest.fixture
def app(limiter: InMemorySlidingWindowRateLimiter) -> FastAPI:
    return create_app(limiter=limiter)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create FastAPI test client (lifespan not started)."""
    return TestClient(app)
