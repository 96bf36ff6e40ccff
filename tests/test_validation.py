"""Tests for entry validation and off-day toggles."""

from datetime import datetime, timezone

import pytest

from timesheet_engine.calculators.types import Break, EntryFields, OffDayKind
from timesheet_engine.services.errors import EntryValidationError
from timesheet_engine.services.validation import (
    BREAK_AFTER_CLOCK_OUT,
    BREAK_BEFORE_CLOCK_IN,
    BREAK_ENDS_AFTER_CLOCK_OUT,
    BREAK_ENDS_BEFORE_START,
    BREAKS_OVERLAP,
    BREAKS_WITHOUT_CLOCK_IN,
    CLOCK_OUT_BEFORE_CLOCK_IN,
    CLOCK_OUT_WITHOUT_CLOCK_IN,
    CONFLICTING_OFF_DAY_FLAGS,
    MULTIPLE_OPEN_BREAKS,
    normalize_entry_fields,
    prepare_for_save,
    set_off_day,
    toggle_off_day,
    validate_entry_fields,
)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, 15, hour, minute, tzinfo=timezone.utc)


def _break(start: datetime, end: datetime | None = None) -> Break:
    return Break(start_time=start, end_time=end)


def _assert_rejected(fields: EntryFields, message: str) -> None:
    with pytest.raises(EntryValidationError) as exc_info:
        validate_entry_fields(fields)
    assert str(exc_info.value) == message


class TestValidateEntryFields:
    """Test the ordering and overlap rules."""

    def test_valid_day(self):
        fields = EntryFields(
            clock_in=_at(9),
            clock_out=_at(17),
            breaks=(_break(_at(12), _at(12, 30)), _break(_at(15), _at(15, 10))),
        )
        validate_entry_fields(fields)

    def test_overlapping_breaks(self):
        """10:00-10:30 and 10:15-10:45 overlap."""
        fields = EntryFields(
            clock_in=_at(9),
            breaks=(_break(_at(10, 15), _at(10, 45)), _break(_at(10), _at(10, 30))),
        )
        _assert_rejected(fields, BREAKS_OVERLAP)

    def test_adjacent_breaks_are_fine(self):
        fields = EntryFields(
            clock_in=_at(9),
            breaks=(_break(_at(10), _at(10, 30)), _break(_at(10, 30), _at(10, 45))),
        )
        validate_entry_fields(fields)

    def test_open_break_followed_by_another(self):
        fields = EntryFields(
            clock_in=_at(9),
            breaks=(_break(_at(10)), _break(_at(11), _at(11, 15))),
        )
        _assert_rejected(fields, BREAKS_OVERLAP)

    def test_two_open_breaks(self):
        fields = EntryFields(clock_in=_at(9), breaks=(_break(_at(10)), _break(_at(11))))
        _assert_rejected(fields, MULTIPLE_OPEN_BREAKS)

    def test_breaks_need_clock_in(self):
        _assert_rejected(EntryFields(breaks=(_break(_at(10)),)), BREAKS_WITHOUT_CLOCK_IN)

    def test_break_before_clock_in(self):
        fields = EntryFields(clock_in=_at(9), breaks=(_break(_at(8, 30), _at(8, 45)),))
        _assert_rejected(fields, BREAK_BEFORE_CLOCK_IN)

    def test_break_ends_before_start(self):
        fields = EntryFields(clock_in=_at(9), breaks=(_break(_at(10), _at(9, 30)),))
        _assert_rejected(fields, BREAK_ENDS_BEFORE_START)

    def test_break_after_clock_out(self):
        fields = EntryFields(
            clock_in=_at(9), clock_out=_at(12), breaks=(_break(_at(13), _at(13, 15)),)
        )
        _assert_rejected(fields, BREAK_AFTER_CLOCK_OUT)

    def test_break_runs_past_clock_out(self):
        fields = EntryFields(
            clock_in=_at(9), clock_out=_at(12), breaks=(_break(_at(11, 50), _at(12, 10)),)
        )
        _assert_rejected(fields, BREAK_ENDS_AFTER_CLOCK_OUT)

    def test_clock_out_before_clock_in(self):
        _assert_rejected(
            EntryFields(clock_in=_at(9), clock_out=_at(8)), CLOCK_OUT_BEFORE_CLOCK_IN
        )

    def test_clock_out_without_clock_in(self):
        _assert_rejected(EntryFields(clock_out=_at(17)), CLOCK_OUT_WITHOUT_CLOCK_IN)

    def test_conflicting_flags(self):
        _assert_rejected(
            EntryFields(is_sick_day=True, is_vacation_day=True), CONFLICTING_OFF_DAY_FLAGS
        )

    def test_full_off_day_skips_clock_rules(self):
        validate_entry_fields(EntryFields(is_sick_day=True, clock_out=_at(8)))


class TestNormalization:
    """Test clock data clearing on full off days."""

    def test_sick_day_drops_clock_data(self):
        fields = EntryFields(
            is_sick_day=True,
            clock_in=_at(9),
            clock_out=_at(17),
            breaks=(_break(_at(12), _at(12, 30)),),
        )
        normalized = normalize_entry_fields(fields)

        assert normalized.clock_in is None
        assert normalized.clock_out is None
        assert normalized.breaks == ()
        assert normalized.is_sick_day is True

    def test_half_sick_keeps_clock_data(self):
        fields = EntryFields(is_half_sick_day=True, clock_in=_at(9))
        assert normalize_entry_fields(fields) == fields

    def test_prepare_for_save_normalizes_first(self):
        """An invalid clock order is irrelevant once vacation clears it."""
        fields = EntryFields(is_vacation_day=True, clock_in=_at(9), clock_out=_at(8))
        saved = prepare_for_save(fields)
        assert saved.clock_in is None


class TestOffDayToggles:
    """Test the mutually exclusive off-day flags."""

    def test_turning_one_on_clears_the_others(self):
        fields = EntryFields(is_sick_day=True)
        toggled = toggle_off_day(fields, OffDayKind.VACATION)

        assert toggled.is_vacation_day is True
        assert toggled.is_sick_day is False
        assert toggled.is_half_sick_day is False

    def test_toggle_twice_clears(self):
        fields = toggle_off_day(EntryFields(), OffDayKind.SICK)
        assert toggle_off_day(fields, OffDayKind.SICK) == EntryFields()

    def test_sick_toggle_drops_clock_data(self):
        fields = EntryFields(clock_in=_at(9), clock_out=_at(17))
        toggled = toggle_off_day(fields, "sick")
        assert toggled.clock_in is None
        assert toggled.clock_out is None

    def test_half_sick_toggle_keeps_shift(self):
        fields = EntryFields(clock_in=_at(9), clock_out=_at(13))
        toggled = toggle_off_day(fields, OffDayKind.HALF_SICK)

        assert toggled.is_half_sick_day is True
        assert toggled.clock_in == _at(9)

    def test_set_off_day_is_idempotent(self):
        fields = EntryFields(is_vacation_day=True)
        assert set_off_day(fields, OffDayKind.VACATION, True) is fields
        assert set_off_day(fields, OffDayKind.VACATION, False).is_vacation_day is False
