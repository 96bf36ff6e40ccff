"""Exception hierarchy for timesheet operations."""

from __future__ import annotations


class TimesheetError(Exception):
    """Base class for timesheet business errors."""


class EntryValidationError(TimesheetError):
    """A proposed entry violates ordering, overlap or off-day rules.

    User-correctable; raised before any write happens.
    """


class InvalidTransitionError(TimesheetError):
    """Raised when an action is not allowed in the current day status."""

    def __init__(self, status: str, action: str, reason: str | None = None):
        self.status = status
        self.action = action
        self.reason = reason
        msg = f"Action '{action}' is not allowed while '{status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class EntryNotFoundError(TimesheetError):
    """Raised when a time entry does not exist."""


class EmployeeNotFoundError(TimesheetError):
    """Raised when an employee does not exist."""


class PersistenceError(TimesheetError):
    """The backing store rejected or failed a write.

    Local state is left unchanged; the caller may retry.
    """


class PermissionDeniedError(TimesheetError):
    """Raised at the API boundary when the actor lacks a capability."""


class InvalidInputError(TimesheetError):
    """A command argument is malformed (employee, settings, date range)."""


class NoPendingRequestError(TimesheetError):
    """Approve/deny was called on an entry with nothing awaiting review."""


class NotificationError(TimesheetError):
    """An outbound notification could not be delivered.

    Raised inside event handlers only; commands turn it into a warning.
    """
