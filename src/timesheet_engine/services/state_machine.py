"""Per-employee, per-day status derived from the stored time entry."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from uuid import UUID

from timesheet_engine.calculators.types import TimeEntry
from timesheet_engine.services.errors import InvalidTransitionError


class DayStatus(str, Enum):
    """Presentation state of one employee's day."""

    IDLE = "idle"
    WORKING = "working"
    BREAK = "break"
    DONE = "done"
    VACATION = "vacation"
    SICK = "sick"
    HALF_SICK = "halfSick"


class DayAction(str, Enum):
    """Actions an employee can take on their own day."""

    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    START_BREAK = "start_break"
    END_BREAK = "end_break"
    MARK_SICK = "mark_sick"
    MARK_HALF_SICK = "mark_half_sick"
    MARK_VACATION = "mark_vacation"
    CLEAR_OFF_DAY = "clear_off_day"


def day_status(entry: TimeEntry | None) -> DayStatus:
    """Derive the day status; first match wins."""
    if entry is None:
        return DayStatus.IDLE
    fields = entry.current
    if fields.is_vacation_day:
        return DayStatus.VACATION
    if fields.is_sick_day:
        return DayStatus.SICK
    if fields.is_half_sick_day:
        return DayStatus.HALF_SICK
    if fields.clock_out is not None:
        return DayStatus.DONE
    if fields.open_break is not None:
        return DayStatus.BREAK
    if fields.clock_in is not None:
        return DayStatus.WORKING
    return DayStatus.IDLE


class DayStatusMachine:
    """Actions allowed per day status.

    - idle: clock in, or mark sick / half-sick / vacation
    - working: start break, clock out, or mark half-sick (ends the shift)
    - break: end break only
    - done: mark half-sick only
    - sick / vacation / halfSick: clear the off-day flag only
    """

    ALLOWED_ACTIONS: dict[DayStatus, frozenset[DayAction]] = {
        DayStatus.IDLE: frozenset(
            {
                DayAction.CLOCK_IN,
                DayAction.MARK_SICK,
                DayAction.MARK_HALF_SICK,
                DayAction.MARK_VACATION,
            }
        ),
        DayStatus.WORKING: frozenset(
            {DayAction.START_BREAK, DayAction.CLOCK_OUT, DayAction.MARK_HALF_SICK}
        ),
        DayStatus.BREAK: frozenset({DayAction.END_BREAK}),
        DayStatus.DONE: frozenset({DayAction.MARK_HALF_SICK}),
        DayStatus.VACATION: frozenset({DayAction.CLEAR_OFF_DAY}),
        DayStatus.SICK: frozenset({DayAction.CLEAR_OFF_DAY}),
        DayStatus.HALF_SICK: frozenset({DayAction.CLEAR_OFF_DAY}),
    }

    @classmethod
    def allowed_actions(cls, status: DayStatus) -> frozenset[DayAction]:
        return cls.ALLOWED_ACTIONS.get(DayStatus(status), frozenset())

    @classmethod
    def can_perform(cls, status: DayStatus, action: DayAction) -> bool:
        return DayAction(action) in cls.allowed_actions(status)

    @classmethod
    def validate_action(cls, status: DayStatus, action: DayAction) -> None:
        """Raise InvalidTransitionError if the action is not allowed."""
        if not cls.can_perform(status, action):
            raise InvalidTransitionError(DayStatus(status).value, DayAction(action).value)


def is_blocking_entry(entry: TimeEntry, today: str) -> bool:
    """A past working day that was never clocked out and not yet disputed."""
    fields = entry.current
    if entry.date >= today:
        return False
    if fields.is_sick_day or fields.is_vacation_day or fields.is_half_sick_day:
        return False
    if entry.is_pending_vacation_request:
        return False
    if entry.has_change_request:
        return False
    # A cleared toggle leaves an empty row; there is nothing to clock out of
    return fields.clock_in is not None and fields.clock_out is None


def find_blocking_entry(
    entries: Iterable[TimeEntry], employee_id: UUID, today: str
) -> TimeEntry | None:
    """The unresolved past entry that blocks today's clock-in, if any.

    Submitting a change request for it is enough to unblock. When several
    exist the earliest date is surfaced first so they are resolved in order.
    """
    candidates = [
        e for e in entries if e.employee_id == employee_id and is_blocking_entry(e, today)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda e: (e.date, str(e.id)))
