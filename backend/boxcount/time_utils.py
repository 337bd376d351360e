from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from flask import current_app, has_app_context


DEFAULT_BUSINESS_UTC_OFFSET = "-03:00"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_utc_offset(value: str) -> timezone:
    """
    Parse a fixed offset like "-03:00", "+0530" or "Z" into a tzinfo.

    Raises ValueError for anything else.
    """
    s = (value or "").strip()
    if s in ("Z", "z", "UTC", "+00:00", "-00:00"):
        return timezone.utc
    if len(s) not in (5, 6) or s[0] not in "+-":
        raise ValueError(f"Invalid UTC offset: {value!r}")
    digits = s[1:].replace(":", "")
    if len(digits) != 4 or not digits.isdigit():
        raise ValueError(f"Invalid UTC offset: {value!r}")
    hours, minutes = int(digits[:2]), int(digits[2:])
    if hours > 14 or minutes > 59:
        raise ValueError(f"Invalid UTC offset: {value!r}")
    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if s[0] == "-" else delta)


def business_timezone() -> tzinfo:
    """Fixed-offset timezone that schedule windows are written in."""
    if has_app_context():
        return parse_utc_offset(
            current_app.config.get("BUSINESS_UTC_OFFSET", DEFAULT_BUSINESS_UTC_OFFSET)
        )
    return parse_utc_offset(DEFAULT_BUSINESS_UTC_OFFSET)


def to_utc_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return to_utc_naive(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
