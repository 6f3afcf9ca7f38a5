"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def isoformat_utc(value: dt.datetime) -> str:
    """Render an aware datetime as an ISO-8601 UTC string."""
    return value.astimezone(dt.UTC).isoformat()
