"""SQLAlchemy ORM models."""

from timesheet_engine.models.base import Base, TimestampMixin
from timesheet_engine.models.employee import EmployeeRecord, SettingsRecord
from timesheet_engine.models.time_entry import BreakRecord, TimeEntryRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "EmployeeRecord",
    "SettingsRecord",
    "TimeEntryRecord",
    "BreakRecord",
]
