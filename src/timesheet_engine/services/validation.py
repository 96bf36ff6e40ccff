"""Validation rules gating every write of a time entry."""

from __future__ import annotations

from timesheet_engine.calculators.types import EntryFields, OffDayKind
from timesheet_engine.services.errors import EntryValidationError

BREAKS_WITHOUT_CLOCK_IN = "Cannot log breaks without a clock-in time."
BREAK_BEFORE_CLOCK_IN = "A break cannot start before clock-in time."
BREAK_AFTER_CLOCK_OUT = "A break cannot start after clock-out."
BREAK_ENDS_AFTER_CLOCK_OUT = "A break must end before or at clock-out."
BREAKS_OVERLAP = "Breaks cannot overlap."
BREAK_ENDS_BEFORE_START = "A break cannot end before it starts."
MULTIPLE_OPEN_BREAKS = "Only one break can be open at a time."
CLOCK_OUT_BEFORE_CLOCK_IN = "Clock-out cannot be before clock-in."
CLOCK_OUT_WITHOUT_CLOCK_IN = "Cannot clock out without a clock-in time."
CONFLICTING_OFF_DAY_FLAGS = "Only one of sick, half-sick or vacation can be set."

_FLAG_FOR_KIND = {
    OffDayKind.SICK: "is_sick_day",
    OffDayKind.HALF_SICK: "is_half_sick_day",
    OffDayKind.VACATION: "is_vacation_day",
}


def normalize_entry_fields(fields: EntryFields) -> EntryFields:
    """Force clock data empty on a full sick or vacation day.

    Half-sick days keep their clock data.
    """
    if fields.is_full_off_day:
        return fields.with_changes(clock_in=None, clock_out=None, breaks=())
    return fields


def validate_entry_fields(fields: EntryFields) -> None:
    """Raise EntryValidationError if the fields break an entry invariant."""
    flags = [fields.is_sick_day, fields.is_half_sick_day, fields.is_vacation_day]
    if sum(flags) > 1:
        raise EntryValidationError(CONFLICTING_OFF_DAY_FLAGS)

    if fields.is_full_off_day:
        return

    clock_in = fields.clock_in
    clock_out = fields.clock_out

    if fields.breaks and clock_in is None:
        raise EntryValidationError(BREAKS_WITHOUT_CLOCK_IN)

    if clock_out is not None:
        if clock_in is None:
            raise EntryValidationError(CLOCK_OUT_WITHOUT_CLOCK_IN)
        if clock_out < clock_in:
            raise EntryValidationError(CLOCK_OUT_BEFORE_CLOCK_IN)

    if sum(1 for b in fields.breaks if b.is_open) > 1:
        raise EntryValidationError(MULTIPLE_OPEN_BREAKS)

    ordered = fields.sorted_breaks()
    for index, b in enumerate(ordered):
        if clock_in is not None and b.start_time < clock_in:
            raise EntryValidationError(BREAK_BEFORE_CLOCK_IN)
        if b.end_time is not None and b.end_time < b.start_time:
            raise EntryValidationError(BREAK_ENDS_BEFORE_START)
        if clock_out is not None:
            if b.start_time > clock_out:
                raise EntryValidationError(BREAK_AFTER_CLOCK_OUT)
            if b.end_time is not None and b.end_time > clock_out:
                raise EntryValidationError(BREAK_ENDS_AFTER_CLOCK_OUT)
        if index + 1 < len(ordered):
            following = ordered[index + 1]
            # An open break runs to "now", so nothing may follow it either
            if b.end_time is None or b.end_time > following.start_time:
                raise EntryValidationError(BREAKS_OVERLAP)


def prepare_for_save(fields: EntryFields) -> EntryFields:
    """Normalize then validate; returns the fields to persist."""
    normalized = normalize_entry_fields(fields)
    validate_entry_fields(normalized)
    return normalized


def toggle_off_day(fields: EntryFields, kind: OffDayKind) -> EntryFields:
    """Flip one off-day flag, keeping the three mutually exclusive.

    Turning a flag on clears the other two. Sick and vacation also drop
    clock data; half-sick keeps it.
    """
    attr = _FLAG_FOR_KIND[OffDayKind(kind)]
    turning_on = not getattr(fields, attr)

    changes = {flag: False for flag in _FLAG_FOR_KIND.values()}
    changes[attr] = turning_on
    updated = fields.with_changes(**changes)
    return normalize_entry_fields(updated)


def set_off_day(fields: EntryFields, kind: OffDayKind, on: bool) -> EntryFields:
    """Set (rather than flip) one off-day flag."""
    attr = _FLAG_FOR_KIND[OffDayKind(kind)]
    if bool(getattr(fields, attr)) == on:
        return fields
    return toggle_off_day(fields, kind)
