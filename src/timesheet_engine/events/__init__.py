"""Timesheet domain events package.

This package provides:
- Typed domain events for entry, vacation, employee and reporting changes
- An async event emitter with post-commit outbox batches
- An audit log of every dispatched event
"""

from timesheet_engine.events.emitter import (
    AsyncEventBatch,
    AsyncEventEmitter,
    EventHandler,
)
from timesheet_engine.events.audit import log_event, register_audit_log
from timesheet_engine.events.types import (
    # Base
    DomainEvent,
    EventCategory,
    EventMetadata,
    # Time entry events
    ChangeRequestResolved,
    ChangeRequestSubmitted,
    MissingClockOutDetected,
    # Vacation events
    VacationRequested,
    VacationRequestResolved,
    # Employee events
    EmployeeInvited,
    # Reporting events
    PeriodReportRequested,
    ReportLine,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    # Time entry events
    "ChangeRequestResolved",
    "ChangeRequestSubmitted",
    "MissingClockOutDetected",
    # Vacation events
    "VacationRequested",
    "VacationRequestResolved",
    # Employee events
    "EmployeeInvited",
    # Reporting events
    "PeriodReportRequested",
    "ReportLine",
    # Emitter
    "AsyncEventEmitter",
    "AsyncEventBatch",
    "EventHandler",
    # Audit
    "log_event",
    "register_audit_log",
]
