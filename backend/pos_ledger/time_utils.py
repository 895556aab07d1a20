# Overview: UTC time helpers; every stored timestamp is a naive datetime in UTC.

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time in UTC with tzinfo stripped."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 query value into a UTC-naive datetime.

    Blank input gives None. Values without an offset are taken as UTC;
    a trailing "Z" or an explicit offset is converted. Malformed input
    raises ValueError.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as "YYYY-MM-DDTHH:MM:SSZ" (whole seconds)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _shift_months(dt: datetime, months: int) -> datetime:
    # Clamp the day so that e.g. March 31 minus one month lands on Feb 28/29
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


REPORT_WINDOWS = ("today", "week", "month", "year")


def window_start(window: str, now: datetime | None = None) -> datetime:
    """
    Start timestamp (UTC-naive, inclusive) of a symbolic reporting window.

    - today: midnight of the current UTC day
    - week:  now minus 7 days
    - month: now minus one calendar month
    - year:  now minus one calendar year
    """
    now = now or utcnow()
    if window == "today":
        return start_of_day(now)
    if window == "week":
        return now - timedelta(days=7)
    if window == "month":
        return _shift_months(now, -1)
    if window == "year":
        return _shift_months(now, -12)
    raise ValueError(f"unknown window {window!r}")
