"""Pydantic schemas for the rate limit admin and status endpoints.

Fields are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RateLimitConfigBody(_CamelModel):
    """Limit/window pair accepted and returned by the admin API.

    Both fields must be JSON integers: booleans, strings and floats are
    rejected instead of coerced. Positivity is checked by the limiter store
    so that invalid values are reported with the same error as every other
    configuration path.
    """

    limit: int = Field(
        ...,
        strict=True,
        description="Maximum admitted requests per window.",
    )
    window_ms: int = Field(
        ...,
        alias="windowMs",
        strict=True,
        description="Sliding window duration in milliseconds.",
    )


class DefaultConfigUpdateResponse(BaseModel):
    message: str = Field(..., description="Human-readable confirmation.")
    config: RateLimitConfigBody


class KeyConfigUpdateResponse(_CamelModel):
    message: str = Field(..., description="Human-readable confirmation.")
    key: str = Field(..., description="Rate limit key that was configured.")
    limit: int
    window_ms: int = Field(..., alias="windowMs")


class KeyStatus(_CamelModel):
    """Usage of one key at the time the status was requested."""

    limit: int
    window_ms: int = Field(..., alias="windowMs")
    current_usage: int = Field(
        ...,
        alias="currentUsage",
        description="Admitted requests still inside the sliding window.",
    )
    remaining: int = Field(..., description="Requests left before throttling.")
    last_access: str = Field(
        ...,
        alias="lastAccess",
        description="ISO-8601 instant of the last check against this key.",
    )


class StatusResponse(_CamelModel):
    default_config: RateLimitConfigBody = Field(..., alias="defaultConfig")
    active_limits: dict[str, KeyStatus] = Field(..., alias="activeLimits")
    total_keys: int = Field(..., alias="totalKeys")
    timestamp: str


class RateLimitExceededResponse(_CamelModel):
    """Body of a 429 answer (documented in OpenAPI only)."""

    error: str = Field("Too Many Requests")
    key: str
    retry_after: str = Field(
        ...,
        alias="retryAfter",
        description="ISO-8601 instant when the oldest counted request ages out.",
    )


class HealthResponse(BaseModel):
    status: str = Field("healthy")
    uptime: float = Field(..., description="Seconds since the application started.")
    timestamp: str


class RootResponse(BaseModel):
    message: str = Field("OK")
    timestamp: str
