"""
Configuration constants, environment settings and cutoff rule validation.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Optional, Union

import pytz

from .models import CutoffRule


DEFAULT_WEEK_COUNT = 4
MAX_STORED_WEEKS = 8

DEFAULT_CUTOFF_DAY = 0
DEFAULT_CUTOFF_TIME = "23:59"
DEFAULT_TIMEZONE = "UTC"

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "ship-tracker"
RELEASES_PER_PAGE = 100
RELEASE_CACHE_TTL = 60.0  # seconds
REQUEST_TIMEOUT = 30.0  # seconds

DEFAULT_STORE_PATH = Path(".ship_tracker.json")

DAYS_OF_WEEK = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

COMMON_TIMEZONES = (
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Toronto",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Tokyo",
    "Asia/Singapore",
    "Asia/Dubai",
    "Australia/Sydney",
    "Pacific/Auckland",
    "UTC",
)

_DAY_NAMES = {name.lower(): i for i, name in enumerate(DAYS_OF_WEEK)}
_DAY_NAMES.update({name[:3].lower(): i for i, name in enumerate(DAYS_OF_WEEK)})

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class ConfigurationError(ValueError):
    """Raised when a cutoff rule or repository identifier is malformed."""


def parse_cutoff_time(value: Union[str, time]) -> time:
    """Parse an ``HH:MM`` wall-clock string into a ``datetime.time``."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    match = _TIME_RE.match((value or "").strip())
    if not match:
        raise ConfigurationError(f"Invalid cutoff time {value!r}; expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ConfigurationError(f"Invalid cutoff time {value!r}; out of range")
    return time(hours, minutes)


def format_cutoff_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def validate_timezone(name: str) -> str:
    """Return the zone name if pytz can resolve it."""
    try:
        pytz.timezone(name)
    except (pytz.UnknownTimeZoneError, AttributeError) as e:
        raise ConfigurationError(f"Unknown timezone {name!r}") from e
    return name


def build_cutoff_rule(
    day_of_week: Union[int, str],
    cutoff_time: Union[str, time],
    timezone: str,
    tag_pattern: Optional[str] = None,
) -> CutoffRule:
    """Validate raw settings and build a ``CutoffRule``.

    Args:
        day_of_week: 0-6 with Sunday as 0, or a day name such as "friday"
        cutoff_time: Local wall-clock time as "HH:MM"
        timezone: IANA zone name
        tag_pattern: Optional regular expression for tag names; empty means none

    Raises:
        ConfigurationError: If any field is malformed
    """
    day = _parse_day(day_of_week)
    parsed_time = parse_cutoff_time(cutoff_time)
    zone = validate_timezone(timezone)
    return CutoffRule(
        day_of_week=day,
        cutoff_time=parsed_time,
        timezone=zone,
        tag_pattern=tag_pattern or None,
    )


def _parse_day(value: Union[int, str]) -> int:
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in _DAY_NAMES:
            return _DAY_NAMES[cleaned]
        try:
            value = int(cleaned)
        except ValueError as e:
            raise ConfigurationError(f"Invalid day of week {value!r}") from e
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        raise ConfigurationError(f"Invalid day of week {value!r}; expected 0-6")
    return value


@dataclass(frozen=True)
class Settings:
    """Process-level settings read from the environment."""

    github_api_url: str = GITHUB_API_URL
    github_token: Optional[str] = None
    store_path: Path = DEFAULT_STORE_PATH

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            github_api_url=os.environ.get("GITHUB_API_URL", GITHUB_API_URL).rstrip("/"),
            github_token=os.environ.get("GITHUB_TOKEN") or None,
            store_path=Path(os.environ.get("SHIP_TRACKER_STORE", str(DEFAULT_STORE_PATH))),
        )
