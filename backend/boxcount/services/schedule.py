# Overview: Pure schedule window evaluation in the business timezone.

"""
A counting window is written as four wall-clock strings in the business
timezone (a fixed UTC offset, so there are no DST gaps):

    start_date "YYYY-MM-DD", start_time "HH:MM"
    end_date   "YYYY-MM-DD", end_time   "HH:MM"

is_within_window() is side-effect free; callers pass "now" explicitly.
"""
from __future__ import annotations

from datetime import date, datetime, time, tzinfo
from typing import Optional

from boxcount.time_utils import business_timezone, to_utc_naive


def parse_window_date(value: Optional[str]) -> Optional[date]:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def parse_window_time(value: Optional[str]) -> Optional[time]:
    """Accept HH:MM or HH:MM:SS; anything else is unparseable."""
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if len(s) not in (5, 8):
        return None
    try:
        return time.fromisoformat(s)
    except ValueError:
        return None


def window_instant(
    day: Optional[str],
    clock: Optional[str],
    tz: Optional[tzinfo] = None,
) -> Optional[datetime]:
    """Combine a window date and time into a UTC-naive instant, or None."""
    d = parse_window_date(day)
    t = parse_window_time(clock)
    if d is None or t is None:
        return None
    local = datetime.combine(d, t, tzinfo=tz or business_timezone())
    return to_utc_naive(local)


def is_within_window(
    start_date: Optional[str],
    start_time: Optional[str],
    end_date: Optional[str],
    end_time: Optional[str],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> bool:
    """
    True when start <= now <= end, both bounds inclusive.

    now may be aware (any zone) or naive UTC. Returns False when any window
    part is empty or unparseable.
    """
    start = window_instant(start_date, start_time, tz)
    end = window_instant(end_date, end_time, tz)
    if start is None or end is None:
        return False
    return start <= to_utc_naive(now) <= end
