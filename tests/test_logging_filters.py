"""Tests for key hashing, sensitive data filtering and JSON formatting in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RateLimitKeyFilter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identity,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired like configure_logging, writing JSON into a buffer."""

    logger = logging.getLogger("test_rate_limit_logging")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(RateLimitKeyFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_rate_limit_key_is_hashed(capture):
    logger, stream = capture

    logger.info("rate_limit.allowed", extra={"rate_limit_key": "user:alice", "remaining": 2})

    record = json.loads(stream.getvalue())
    assert "user:alice" not in stream.getvalue()
    assert record["key_type"] == "user"
    assert record["key_hash"] == hash_identity("user:alice")
    assert record["remaining"] == 2


def test_ip_key_reports_ip_type(capture):
    logger, stream = capture

    logger.warning("rate_limit.exceeded", extra={"rate_limit_key": "ip:10.0.0.7"})

    record = json.loads(stream.getvalue())
    assert "10.0.0.7" not in stream.getvalue()
    assert record["key_type"] == "ip"


def test_sensitive_filter_redacts_identities(capture):
    logger, stream = capture

    logger.info(
        "event",
        extra={
            "user": "alice",
            "client_ip": "192.168.1.20",
            "headers": {"x-user": "bob", "user-agent": "pytest"},
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "alice" not in output
    assert "192.168.1.20" not in output
    assert "bob" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output
    assert "visible" in output


def test_safe_fields_pass_through(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.sweep",
        extra={"evicted": 4, "tracked_keys": 12, "route": "/admin/status"},
    )

    record = json.loads(stream.getvalue())
    assert record["evicted"] == 4
    assert record["tracked_keys"] == 12
    assert record["route"] == "/admin/status"
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context(capture):
    logger, stream = capture
    set_request_id("req-123")

    logger.info("with_context")

    record = json.loads(stream.getvalue())
    assert record["request_id"] == "req-123"
    assert record["level"] == "info"
    assert record["message"] == "with_context"


def test_exception_info_is_formatted(capture):
    logger, stream = capture

    try:
        raise RuntimeError("limiter bug")
    except RuntimeError:
        logger.exception("rate_limit.evaluation_failed")

    record = json.loads(stream.getvalue())
    assert "RuntimeError: limiter bug" in record["exc_info"]
