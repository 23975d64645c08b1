"""Datetime helpers: timezone-aware timestamps for snapshots and manifests."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse an ISO-8601 timestamp into a timezone-aware datetime.

    Accepts the usual ISO 8601 variants (``T`` or space separator, with or
    without fractional seconds, ``Z`` or numeric offset). Missing timezone
    defaults to default_tz.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def from_timestamp(ts: float, tz: str = "UTC") -> datetime:
    """Convert a POSIX timestamp (e.g. ``st_mtime``) to an aware datetime in tz."""
    return pendulum.from_timestamp(ts, tz=tz)


def now_in(tz: str = "UTC") -> datetime:
    """Return the current time in the given timezone."""
    return pendulum.now(tz)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
