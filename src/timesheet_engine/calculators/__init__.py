"""Timesheet calculation core."""

from timesheet_engine.calculators.aggregation import (
    generate_csv,
    summarize_period,
    total_payroll,
)
from timesheet_engine.calculators.stats import calculate_stats
from timesheet_engine.calculators.types import (
    AppSettings,
    Break,
    DerivedStats,
    Employee,
    EntryFields,
    IssueType,
    OffDayKind,
    PeriodSummary,
    TimeEntry,
)

__all__ = [
    "AppSettings",
    "Break",
    "DerivedStats",
    "Employee",
    "EntryFields",
    "IssueType",
    "OffDayKind",
    "PeriodSummary",
    "TimeEntry",
    "calculate_stats",
    "generate_csv",
    "summarize_period",
    "total_payroll",
]
