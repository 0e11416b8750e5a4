"""
Week window calculation from a weekly cutoff rule.

All zone handling happens in ``next_cutoff``: ``now`` is converted to the
rule's wall clock, the cutoff day and time are applied there, and the result
is converted back to UTC exactly once. Everything after that is absolute
arithmetic, so every window spans exactly seven days even across daylight
saving transitions.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import pytz

from .config import DEFAULT_WEEK_COUNT
from .models import CutoffRule, WeekWindow
from .time_utils import ensure_utc


WEEK = timedelta(days=7)


def sunday_weekday(dt: datetime) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return (dt.weekday() + 1) % 7


def next_cutoff(rule: CutoffRule, now: datetime) -> datetime:
    """Return the first cutoff instant strictly after ``now`` (UTC)."""
    now = ensure_utc(now)
    tz = pytz.timezone(rule.timezone)

    local_now = now.astimezone(tz).replace(tzinfo=None)
    local_cutoff = local_now.replace(
        hour=rule.cutoff_time.hour,
        minute=rule.cutoff_time.minute,
        second=0,
        microsecond=0,
    )
    shift = rule.day_of_week - sunday_weekday(local_cutoff)
    local_cutoff += timedelta(days=shift)

    cutoff = tz.localize(local_cutoff).astimezone(timezone.utc)
    # A DST shift between now and the local cutoff can leave the anchor an
    # hour outside (now, now + 7 days]; the loops only run in that case.
    while cutoff <= now:
        cutoff += WEEK
    while cutoff - WEEK > now:
        cutoff -= WEEK
    return cutoff


def window_label(index: int) -> str:
    if index == 0:
        return "This Week"
    if index == -1:
        return "Last Week"
    return f"{-index} Weeks Ago"


def compute_week_windows(
    rule: CutoffRule,
    now: datetime,
    count: int = DEFAULT_WEEK_COUNT,
) -> List[WeekWindow]:
    """Compute the in-progress window followed by ``count`` completed ones.

    Args:
        rule: Validated cutoff rule
        now: Reference instant; naive values are taken as UTC
        count: Number of completed windows to include, newest first

    Returns:
        ``count + 1`` contiguous windows, current window first
    """
    current_end = next_cutoff(rule, now)
    windows = []
    for offset in range(count + 1):
        end = current_end - offset * WEEK
        windows.append(WeekWindow(
            index=-offset,
            start=end - WEEK,
            end=end,
            is_current=offset == 0,
            label=window_label(-offset),
        ))
    return windows


def find_window(
    windows: Iterable[WeekWindow],
    week_start: datetime,
    week_end: datetime,
) -> Optional[WeekWindow]:
    week_start, week_end = ensure_utc(week_start), ensure_utc(week_end)
    for window in windows:
        if window.start == week_start and window.end == week_end:
            return window
    return None


def window_for_instant(windows: Iterable[WeekWindow], instant: datetime) -> Optional[WeekWindow]:
    """Return the window containing ``instant``, if any."""
    instant = ensure_utc(instant)
    for window in windows:
        if window.start <= instant < window.end:
            return window
    return None
