"""Change-request reconciliation for admin review."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Literal

from timesheet_engine.calculators.stats import calculate_stats
from timesheet_engine.calculators.time_math import format_clock_time, minutes_between
from timesheet_engine.calculators.types import EntryFields, TimeEntry

PendingKind = Literal["vacation_request", "change_request"]


def merge_for_review(entry: TimeEntry) -> TimeEntry:
    """The entry as it would look if its change request were approved.

    Identity (id, employee, date) always comes from the original; every
    other field comes from the proposal. Without a proposal the entry is
    returned unchanged.
    """
    if entry.pending is None:
        return entry
    return TimeEntry(
        id=entry.id,
        employee_id=entry.employee_id,
        date=entry.date,
        current=entry.pending,
        pending=None,
    )


def worked_minutes_delta(
    entry: TimeEntry, now: datetime | None = None, today: str | None = None
) -> int:
    """Signed proposed-minus-original worked minutes."""
    original = calculate_stats(entry.settled(), now=now, today=today)
    proposed = calculate_stats(merge_for_review(entry), now=now, today=today)
    return proposed.total_worked_minutes - original.total_worked_minutes


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_minutes_delta(delta: int) -> str:
    """Render a signed minute delta, e.g. ``+1 hour 15 minutes``."""
    if delta == 0:
        return "No change"
    sign = "+" if delta > 0 else "-"
    hours, minutes = divmod(abs(delta), 60)
    if hours and minutes:
        return f"{sign}{_plural(hours, 'hour')} {_plural(minutes, 'minute')}"
    if hours:
        return f"{sign}{_plural(hours, 'hour')}"
    return f"{sign}{_plural(minutes, 'minute')}"


def change_request_summary(fields: EntryFields, tz: tzinfo | None = None) -> str:
    """One-line human summary of a proposal, used in the admin email."""
    if fields.is_sick_day:
        return "Marked as sick day"
    if fields.is_vacation_day:
        return "Marked as vacation day"

    clock_in = format_clock_time(fields.clock_in, tz) if fields.clock_in else "Not set"
    clock_out = format_clock_time(fields.clock_out, tz) if fields.clock_out else "Not set"
    summary = f"Clock in: {clock_in}, Clock out: {clock_out}"
    if fields.is_half_sick_day:
        summary = f"Marked as half sick day, {summary}"

    if fields.breaks:
        count = len(fields.breaks)
        break_minutes = sum(
            minutes_between(b.start_time, b.end_time)
            for b in fields.breaks
            if b.end_time is not None
        )
        hours, minutes = divmod(break_minutes, 60)
        duration = f"{hours}h {minutes}m" if hours else f"{minutes}m"
        summary += f", {_plural(count, 'break')} ({duration})"
    return summary


def classify_pending(entry: TimeEntry) -> PendingKind | None:
    """Tell an open vacation request apart from a change request.

    Both need admin attention; a vacation request is ``pending_approval``
    on an entry not yet flagged as a vacation day.
    """
    if entry.is_pending_vacation_request:
        return "vacation_request"
    if entry.has_change_request:
        return "change_request"
    return None
