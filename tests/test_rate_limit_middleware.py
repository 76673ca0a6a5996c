"""Tests for the rate limit middleware (key resolution, headers, 429, fail open)."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.app_factory import create_app
from app.core.config import settings
from app.core.rate_limit import is_exempt_path


class ExplodingLimiter(InMemorySlidingWindowRateLimiter):
    def check(self, key, *, now_ms=None):
        raise RuntimeError("limiter bug")


def test_sets_rate_limit_headers(client: TestClient) -> None:
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json()["message"] == "OK"
    assert resp.headers["X-RateLimit-Remaining"] == "2"
    assert resp.headers["X-RateLimit-Limit"] == "3"
    assert resp.headers["X-RateLimit-Key"] == "ip:testclient"
    reset = resp.headers["X-RateLimit-Reset"]
    assert reset.endswith("Z")
    datetime.fromisoformat(reset.replace("Z", "+00:00"))


def test_returns_429_after_limit(client: TestClient) -> None:
    for _ in range(3):
        assert client.get("/").status_code == 200

    resp = client.get("/")

    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "Too Many Requests"
    assert body["key"] == "ip:testclient"
    assert body["retryAfter"] == resp.headers["X-RateLimit-Reset"]
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.headers["Retry-After"] == "1"
    assert resp.headers.get("X-Request-ID")


def test_admits_again_after_window(client: TestClient, clock) -> None:
    for _ in range(4):
        client.get("/")

    clock.advance_ms(1100)
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Remaining"] == "2"


def test_user_query_param_selects_user_key(client: TestClient) -> None:
    resp = client.get("/", params={"user": "alice"})

    assert resp.headers["X-RateLimit-Key"] == "user:alice"


def test_user_header_selects_user_key(client: TestClient) -> None:
    resp = client.get("/", headers={"X-User": "bob"})

    assert resp.headers["X-RateLimit-Key"] == "user:bob"


def test_query_param_takes_precedence_over_header(client: TestClient) -> None:
    resp = client.get("/", params={"user": "alice"}, headers={"X-User": "bob"})

    assert resp.headers["X-RateLimit-Key"] == "user:alice"


def test_user_in_json_body_selects_user_key(client: TestClient) -> None:
    resp = client.post("/", json={"user": "carol"})

    assert resp.headers["X-RateLimit-Key"] == "user:carol"


def test_malformed_json_body_falls_back_to_ip(client: TestClient) -> None:
    resp = client.post(
        "/",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.headers["X-RateLimit-Key"] == "ip:testclient"


def test_oversized_json_body_is_not_inspected(client: TestClient) -> None:
    resp = client.post("/", json={"user": "carol", "padding": "x" * 20_000})

    assert resp.headers["X-RateLimit-Key"] == "ip:testclient"


def test_body_cap_is_configurable(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_max_body_bytes", 8)

    resp = client.post("/", json={"user": "carol"})

    assert resp.headers["X-RateLimit-Key"] == "ip:testclient"


def test_keys_are_limited_independently(client: TestClient) -> None:
    for _ in range(3):
        client.get("/", params={"user": "alice"})

    assert client.get("/", params={"user": "alice"}).status_code == 429
    assert client.get("/", params={"user": "bob"}).status_code == 200
    assert client.get("/").status_code == 200


@pytest.mark.parametrize("path", ["/health", "/admin/status", "/admin/config/default"])
def test_exempt_paths_are_never_limited(client: TestClient, path: str) -> None:
    for _ in range(5):
        resp = client.get(path)
        assert resp.status_code == 200
        assert "X-RateLimit-Key" not in resp.headers


def test_is_exempt_path() -> None:
    assert is_exempt_path("/admin") is True
    assert is_exempt_path("/admin/config/user:1") is True
    assert is_exempt_path("/health") is True
    assert is_exempt_path("/administrator") is False
    assert is_exempt_path("/") is False


def test_fails_open_when_limiter_raises() -> None:
    app = create_app(limiter=ExplodingLimiter(limit=1, window_ms=1000))
    client = TestClient(app)

    for _ in range(3):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "X-RateLimit-Key" not in resp.headers


def test_disabled_rate_limiting_skips_limiter(
    client: TestClient, limiter, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_enabled", False)

    for _ in range(5):
        assert client.get("/").status_code == 200

    assert len(limiter) == 0


def test_openapi_documents_rate_limit_headers(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    root_responses = schema["paths"]["/"]["get"]["responses"]
    assert "429" in root_responses
    assert "X-RateLimit-Remaining" in root_responses["200"]["headers"]
    assert "429" not in schema["paths"]["/health"]["get"]["responses"]
    assert {t["name"] for t in schema["tags"]} >= {"Service", "Admin", "Health"}
