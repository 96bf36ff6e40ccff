"""Time arithmetic helpers.

All date keys (``YYYY-MM-DD``) and wall-clock renderings are computed in
one canonical business timezone, taken from ``BUSINESS_TIMEZONE``.
Absolute timestamps are timezone-aware; a naive datetime is read as a
wall-clock time in the business timezone.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, tzinfo

from timesheet_engine.config import get_settings

logger = logging.getLogger(__name__)

EMPTY_CLOCK_TIME = "--:--"


def business_tz() -> tzinfo:
    """Return the configured business timezone."""
    return get_settings().tz


def _aware(moment: datetime, tz: tzinfo | None = None) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz or business_tz())
    return moment


def now_in_business_tz(tz: tzinfo | None = None) -> datetime:
    return datetime.now(tz or business_tz())


def minutes_between(
    start: datetime,
    end: datetime | None = None,
    now: datetime | None = None,
) -> int:
    """Whole minutes elapsed from ``start`` to ``end``.

    An open interval (``end`` is None) is measured against ``now``.
    Clock skew never yields a negative result.
    """
    finish = end if end is not None else (now or now_in_business_tz())
    seconds = (_aware(finish) - _aware(start)).total_seconds()
    return max(0, int(seconds // 60))


def local_date_key(moment: datetime, tz: tzinfo | None = None) -> str:
    """Calendar day of ``moment`` in the business timezone."""
    zone = tz or business_tz()
    return _aware(moment, zone).astimezone(zone).date().isoformat()


def today_key(now: datetime | None = None, tz: tzinfo | None = None) -> str:
    return local_date_key(now or now_in_business_tz(tz), tz)


def parse_date_key(key: str) -> date:
    return date.fromisoformat(key)


def is_date_in_past(key: str, today: str | None = None) -> bool:
    # YYYY-MM-DD keys order lexically
    return key < (today or today_key())


def combine_date_and_clock_time(
    date_key: str, clock_time: str, tz: tzinfo | None = None
) -> datetime:
    """Absolute timestamp for a wall-clock ``HH:MM`` on a calendar day."""
    day = parse_date_key(date_key)
    hours, minutes = parse_clock_time(clock_time)
    return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=tz or business_tz())


def clock_time_input(moment: datetime | None, tz: tzinfo | None = None) -> str:
    """``HH:MM`` for a time picker; empty string for None."""
    if moment is None:
        return ""
    zone = tz or business_tz()
    local = _aware(moment, zone).astimezone(zone)
    return f"{local.hour:02d}:{local.minute:02d}"


def format_clock_time(moment: datetime | None, tz: tzinfo | None = None) -> str:
    """Render as ``h:mm am`` in the business timezone."""
    if moment is None:
        return EMPTY_CLOCK_TIME
    zone = tz or business_tz()
    local = _aware(moment, zone).astimezone(zone)
    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    return f"{hour}:{local.minute:02d} {suffix}"


def format_duration(minutes: int) -> str:
    """Render a minute count as ``Xh Ym``."""
    minutes = max(0, int(minutes))
    return f"{minutes // 60}h {minutes % 60}m"


def format_date_for_display(key: str) -> str:
    """Render a date key as ``Mon, Jan 15``."""
    day = parse_date_key(key)
    return f"{day:%a}, {day:%b} {day.day}"


def generate_date_range(start_key: str, end_key: str) -> list[str]:
    """All date keys from start to end, inclusive."""
    current = parse_date_key(start_key)
    last = parse_date_key(end_key)
    keys: list[str] = []
    while current <= last:
        keys.append(current.isoformat())
        current += timedelta(days=1)
    return keys


def shift_date_key(key: str, days: int) -> str:
    return (parse_date_key(key) + timedelta(days=days)).isoformat()


def is_before_cutoff(
    cutoff: str, now: datetime | None = None, tz: tzinfo | None = None
) -> bool:
    """True while the local wall clock is before ``cutoff`` (``HH:MM``)."""
    try:
        hours, minutes = parse_clock_time(cutoff)
    except ValueError:
        logger.warning("Invalid cutoff time %r", cutoff)
        return False
    zone = tz or business_tz()
    local = _aware(now or now_in_business_tz(zone), zone).astimezone(zone)
    return local.hour * 60 + local.minute < hours * 60 + minutes


def parse_clock_time(value: str) -> tuple[int, int]:
    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Clock time out of range: {value!r}")
    return hours, minutes
