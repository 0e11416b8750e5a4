"""
Shared datetime helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytz


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp and normalize it to UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def format_timestamp(dt: datetime) -> str:
    """Render a UTC ISO 8601 timestamp with a trailing ``Z``."""
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def to_local(dt: datetime, tz_name: str) -> datetime:
    return ensure_utc(dt).astimezone(pytz.timezone(tz_name))


def format_week_range(start: datetime, end: datetime, tz_name: str) -> str:
    """Format a window as e.g. ``Mar 10 - Mar 17, 2024`` in the given zone."""
    local_start = to_local(start, tz_name)
    local_end = to_local(end, tz_name)
    return (
        f"{local_start.strftime('%b')} {local_start.day} - "
        f"{local_end.strftime('%b')} {local_end.day}, {local_end.year}"
    )
