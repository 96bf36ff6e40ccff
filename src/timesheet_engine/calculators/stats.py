"""Derived statistics for a single day's time entry."""

from __future__ import annotations

from datetime import datetime

from timesheet_engine.calculators.time_math import (
    is_date_in_past,
    minutes_between,
    now_in_business_tz,
    today_key,
)
from timesheet_engine.calculators.types import DerivedStats, IssueType, TimeEntry

# Shifts longer than this with no recorded break are flagged
LONG_SHIFT_MINUTES = 6 * 60


def calculate_stats(
    entry: TimeEntry | None,
    now: datetime | None = None,
    today: str | None = None,
) -> DerivedStats:
    """Compute worked minutes, break minutes and issues for an entry.

    Stats always come from the entry's settled values; a pending change
    request only adds CHANGE_REQUESTED. Full sick and vacation days
    short-circuit to zero so nobody gets a missing clock-out on a day they
    were not expected to work. Half-sick days are computed like normal days.

    ``now`` pins the end of open intervals; ``today`` pins the date used
    for the missing clock-out check. Both default to the wall clock.
    """
    if entry is None:
        return DerivedStats()

    fields = entry.current

    if fields.is_sick_day:
        return DerivedStats(issues=(IssueType.SICK_DAY,))

    if fields.is_vacation_day:
        return DerivedStats(issues=(IssueType.VACATION_DAY,))

    if entry.is_pending_vacation_request:
        return DerivedStats(issues=(IssueType.VACATION_REQUEST_PENDING,))

    issues: list[IssueType] = []
    if entry.has_change_request:
        issues.append(IssueType.CHANGE_REQUESTED)

    if fields.clock_in is None:
        return DerivedStats(issues=tuple(issues))

    now = now or now_in_business_tz()
    gross_minutes = minutes_between(fields.clock_in, fields.clock_out, now=now)

    total_break_minutes = 0
    has_open_break = False
    for b in fields.breaks:
        if b.is_open:
            has_open_break = True
        total_break_minutes += minutes_between(b.start_time, b.end_time, now=now)

    total_worked_minutes = max(0, gross_minutes - total_break_minutes)

    if has_open_break:
        issues.append(IssueType.OPEN_BREAK)

    if fields.clock_out is None and is_date_in_past(entry.date, today or today_key(now)):
        issues.append(IssueType.MISSING_CLOCK_OUT)

    if total_worked_minutes > LONG_SHIFT_MINUTES and not fields.breaks:
        issues.append(IssueType.LONG_SHIFT_NO_BREAK)

    return DerivedStats(
        total_worked_minutes=total_worked_minutes,
        total_break_minutes=total_break_minutes,
        issues=tuple(issues),
    )
