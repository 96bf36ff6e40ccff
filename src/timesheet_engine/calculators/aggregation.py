"""Period aggregation for payroll reporting."""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from timesheet_engine.calculators.stats import calculate_stats
from timesheet_engine.calculators.time_math import format_clock_time
from timesheet_engine.calculators.types import (
    DailySummary,
    Employee,
    PeriodSummary,
    TimeEntry,
)

CENTS = Decimal("0.01")
HALF_DAY = Decimal("0.5")


def entries_in_period(
    entries: Iterable[TimeEntry], period_start: str, period_end: str
) -> list[TimeEntry]:
    """Entries whose date key falls in [start, end]; keys compare as strings."""
    return [e for e in entries if period_start <= e.date <= period_end]


def summarize_employee(
    employee: Employee,
    entries: Iterable[TimeEntry],
    now: datetime | None = None,
    today: str | None = None,
) -> PeriodSummary:
    """Fold one employee's entries into period totals."""
    summary = PeriodSummary(employee=employee)

    for entry in entries:
        stats = calculate_stats(entry, now=now, today=today)
        fields = entry.current
        if fields.is_sick_day:
            summary.sick_days += 1
        elif fields.is_half_sick_day:
            summary.sick_days += HALF_DAY
            summary.total_minutes += stats.total_worked_minutes
            if stats.total_worked_minutes > 0:
                summary.days_worked += 1
        elif fields.is_vacation_day:
            summary.vacation_days += 1
        else:
            summary.total_minutes += stats.total_worked_minutes
            if stats.total_worked_minutes > 0:
                summary.days_worked += 1
        if stats.issues:
            summary.has_issues = True

    rate = employee.hourly_rate or Decimal("0")
    pay = Decimal(summary.total_minutes) / Decimal(60) * Decimal(rate)
    summary.total_pay = pay.quantize(CENTS, rounding=ROUND_HALF_UP)
    return summary


def summarize_period(
    employees: Iterable[Employee],
    entries: Iterable[TimeEntry],
    period_start: str,
    period_end: str,
    now: datetime | None = None,
    today: str | None = None,
) -> list[PeriodSummary]:
    """Build payroll summaries for every tracked worker in the period.

    Admins and bookkeepers are excluded outright. Archived employees are
    kept when they have hours, sick days or vacation days in range.
    """
    by_employee: dict[UUID, list[TimeEntry]] = defaultdict(list)
    for entry in entries_in_period(entries, period_start, period_end):
        by_employee[entry.employee_id].append(entry)

    summaries: list[PeriodSummary] = []
    for employee in employees:
        if not employee.is_tracked_worker:
            continue
        summary = summarize_employee(
            employee, by_employee.get(employee.id, []), now=now, today=today
        )
        if (
            employee.is_active
            or summary.total_minutes > 0
            or summary.sick_days > 0
            or summary.vacation_days > 0
        ):
            summaries.append(summary)

    summaries.sort(key=lambda s: s.employee.name.casefold())
    return summaries


def total_payroll(summaries: Iterable[PeriodSummary]) -> Decimal:
    return sum((s.total_pay for s in summaries), Decimal("0.00"))


def vacation_days_used(employee_id: UUID, entries: Iterable[TimeEntry]) -> int:
    return sum(
        1
        for e in entries
        if e.employee_id == employee_id and e.current.is_vacation_day
    )


def vacation_days_remaining(employee: Employee, entries: Iterable[TimeEntry]) -> int:
    used = vacation_days_used(employee.id, entries)
    return max(0, employee.vacation_days_total - used)


CSV_HEADERS = [
    "Date",
    "Employee",
    "Role",
    "Clock In",
    "Clock Out",
    "Break Duration",
    "Total Worked (Hrs)",
    "Status",
    "Issues",
]


def status_label(entry: TimeEntry | None) -> str:
    if entry is None:
        return "Off"
    fields = entry.current
    if fields.is_sick_day:
        return "Sick"
    if fields.is_half_sick_day:
        return "Half Sick"
    if fields.is_vacation_day:
        return "Vacation"
    if fields.clock_in is None:
        return "Off"
    return "Working"


def generate_csv(summaries: Iterable[DailySummary], tz: tzinfo | None = None) -> str:
    """Daily timesheet export, one row per employee-day; times in ``tz``."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for s in summaries:
        entry = s.entry
        fields = entry.current if entry else None
        writer.writerow(
            [
                entry.date if entry else "",
                s.employee.name,
                s.employee.role,
                format_clock_time(fields.clock_in, tz) if fields and fields.clock_in else "",
                format_clock_time(fields.clock_out, tz) if fields and fields.clock_out else "",
                f"{s.stats.total_break_minutes / 60:.2f}",
                f"{s.stats.total_worked_minutes / 60:.2f}",
                status_label(entry),
                ", ".join(issue.value for issue in s.stats.issues),
            ]
        )
    return buffer.getvalue()
