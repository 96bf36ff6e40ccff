"""Timesheet business services."""

from timesheet_engine.services.errors import (
    EmployeeNotFoundError,
    EntryNotFoundError,
    EntryValidationError,
    InvalidInputError,
    InvalidTransitionError,
    NoPendingRequestError,
    NotificationError,
    PermissionDeniedError,
    PersistenceError,
    TimesheetError,
)
from timesheet_engine.services.repository import TimesheetRepository
from timesheet_engine.services.state_machine import (
    DayAction,
    DayStatus,
    DayStatusMachine,
    day_status,
    find_blocking_entry,
)
from timesheet_engine.services.timesheet_service import (
    CommandResult,
    PendingReview,
    TimesheetService,
    TimesheetState,
)

__all__ = [
    "CommandResult",
    "DayAction",
    "DayStatus",
    "DayStatusMachine",
    "EmployeeNotFoundError",
    "EntryNotFoundError",
    "EntryValidationError",
    "InvalidInputError",
    "InvalidTransitionError",
    "NoPendingRequestError",
    "NotificationError",
    "PendingReview",
    "PermissionDeniedError",
    "PersistenceError",
    "TimesheetError",
    "TimesheetRepository",
    "TimesheetService",
    "TimesheetState",
    "day_status",
    "find_blocking_entry",
]
