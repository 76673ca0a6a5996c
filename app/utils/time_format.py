"""Helpers rendering epoch-millisecond instants for HTTP payloads."""

from __future__ import annotations

from datetime import datetime, timezone


def ms_to_iso8601(epoch_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string.

    Examples:
        >>> ms_to_iso8601(0)
        '1970-01-01T00:00:00.000Z'
    """

    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
