"""Rate limiting middleware for the HTTP layer.

This module wires the limiter store (kept on ``app.state.limiter``) into
every request that is neither an admin call nor an exempt path.

Design goals:
- Minimal coupling: the middleware depends on AbstractRateLimiter only.
- Fail open: a limiter fault is logged and the request proceeds unthrottled.
- Always informative: X-RateLimit-* headers are set on every limited route.

Key strategy:
- Explicit user identifier (``user`` query param, ``X-User`` header, or a
  ``user`` field in a JSON body no larger than
  ``APP_RATE_LIMIT_MAX_BODY_BYTES``) -> ``user:<id>``.
- Otherwise the client IP -> ``ip:<address>``.

Known limitation: the user identifier is taken at face value, so a client
can move between its IP bucket and any number of user buckets by changing
or omitting the identifier. Admin requests are not authenticated.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.core.config import parse_csv, settings
from app.utils.time_format import ms_to_iso8601

logger = logging.getLogger(__name__)

_BODYLESS_METHODS = {"GET", "HEAD", "OPTIONS", "DELETE"}


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """FastAPI dependency returning the limiter owned by the application.

    The instance is created by the app factory and kept on ``app.state`` so
    state survives across requests without a module-level singleton.
    """

    return request.app.state.limiter


def is_exempt_path(path: str) -> bool:
    """Return True when the path bypasses rate limiting.

    Admin routes and the configured exempt paths (health, docs) are never
    counted against any key.
    """

    admin_prefix = settings.app.admin_prefix.rstrip("/")
    if admin_prefix and (path == admin_prefix or path.startswith(admin_prefix + "/")):
        return True
    return path in parse_csv(settings.app.rate_limit_exempt_paths)


async def _user_from_json_body(request: Request) -> str | None:
    if request.method in _BODYLESS_METHODS:
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    # Unknown (chunked) or oversized bodies are not buffered here.
    content_length = request.headers.get("content-length", "")
    if not content_length.isdigit():
        return None
    if int(content_length) > settings.app.rate_limit_max_body_bytes:
        return None
    try:
        payload = await request.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    user = payload.get("user")
    if isinstance(user, bool) or not isinstance(user, (str, int)):
        return None
    return str(user) or None


async def resolve_rate_limit_key(request: Request) -> tuple[str, str]:
    """Build the limiter key for the current request.

    Args:
        request: Incoming request.

    Returns:
        Tuple of (namespaced key, key type).
    """

    user = request.query_params.get("user") or request.headers.get("x-user")
    if not user:
        user = await _user_from_json_body(request)
    if user:
        return f"user:{user}", "user"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}", "ip"


def build_rate_limit_headers(key: str, result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": ms_to_iso8601(result.reset_at_ms),
        "X-RateLimit-Key": key,
    }


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing per-key sliding-window limits.

    Consumes one unit of the requester's budget. When the budget is spent,
    answers 429 without calling the route. Any failure while resolving the
    key or evaluating the window lets the request through.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The route response with X-RateLimit-* headers, or a 429.
    """

    if not settings.app.rate_limit_enabled or is_exempt_path(request.url.path):
        return await call_next(request)

    try:
        limiter = get_rate_limiter(request)
        key, _ = await resolve_rate_limit_key(request)
        result = limiter.check(key)
    except Exception:
        logger.exception(
            "rate_limit.evaluation_failed",
            extra={
                "request_path": request.url.path,
                "request_method": request.method,
            },
        )
        return await call_next(request)

    headers = build_rate_limit_headers(key, result)

    if not result.allowed:
        retry_after = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "rate_limit_key": key,
                "limit": result.limit,
                "retry_after_s": retry_after,
            },
        )
        headers["Retry-After"] = str(retry_after)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "Too Many Requests",
                "key": key,
                "retryAfter": headers["X-RateLimit-Reset"],
            },
            headers=headers,
        )

    logger.info(
        "rate_limit.allowed",
        extra={
            "rate_limit_key": key,
            "limit": result.limit,
            "remaining": result.remaining,
        },
    )

    response = await call_next(request)
    response.headers.update(headers)
    return response
