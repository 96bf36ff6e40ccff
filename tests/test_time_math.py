"""Tests for time arithmetic helpers."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from timesheet_engine.calculators.time_math import (
    EMPTY_CLOCK_TIME,
    clock_time_input,
    combine_date_and_clock_time,
    format_clock_time,
    format_date_for_display,
    format_duration,
    generate_date_range,
    is_before_cutoff,
    is_date_in_past,
    local_date_key,
    minutes_between,
    parse_clock_time,
    shift_date_key,
)

UTC = timezone.utc
NEW_YORK = ZoneInfo("America/New_York")


class TestMinutesBetween:
    """Test elapsed-minute arithmetic."""

    def test_closed_interval(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
        end = datetime(2024, 1, 15, 17, 30, tzinfo=UTC)
        assert minutes_between(start, end) == 510

    def test_partial_minutes_are_floored(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
        end = start + timedelta(minutes=10, seconds=59)
        assert minutes_between(start, end) == 10

    def test_open_interval_uses_now(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
        now = datetime(2024, 1, 15, 9, 45, tzinfo=UTC)
        assert minutes_between(start, None, now=now) == 45

    def test_clock_skew_never_negative(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
        end = datetime(2024, 1, 15, 8, 55, tzinfo=UTC)
        assert minutes_between(start, end) == 0

    def test_mixed_zones_compare_as_instants(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=NEW_YORK)
        end = datetime(2024, 1, 15, 15, 0, tzinfo=UTC)
        assert minutes_between(start, end) == 60


class TestDateKeys:
    """Test calendar day keys in the business timezone."""

    def test_local_date_key_uses_zone(self):
        # 02:00 UTC is still the previous evening in New York
        moment = datetime(2024, 1, 16, 2, 0, tzinfo=UTC)
        assert local_date_key(moment, UTC) == "2024-01-16"
        assert local_date_key(moment, NEW_YORK) == "2024-01-15"

    def test_is_date_in_past(self):
        assert is_date_in_past("2024-01-14", "2024-01-15") is True
        assert is_date_in_past("2024-01-15", "2024-01-15") is False
        assert is_date_in_past("2024-01-16", "2024-01-15") is False

    def test_generate_date_range_inclusive(self):
        assert generate_date_range("2024-02-27", "2024-03-01") == [
            "2024-02-27",
            "2024-02-28",
            "2024-02-29",
            "2024-03-01",
        ]

    def test_generate_date_range_single_day(self):
        assert generate_date_range("2024-01-15", "2024-01-15") == ["2024-01-15"]

    def test_generate_date_range_reversed_is_empty(self):
        assert generate_date_range("2024-01-16", "2024-01-15") == []

    def test_shift_date_key(self):
        assert shift_date_key("2024-01-01", -1) == "2023-12-31"
        assert shift_date_key("2024-01-15", 90) == "2024-04-14"


class TestClockTimes:
    """Test wall-clock parsing and rendering."""

    def test_combine_then_format_round_trips(self):
        moment = combine_date_and_clock_time("2024-01-15", "14:30", UTC)
        assert format_clock_time(moment, UTC) == "2:30 pm"
        assert clock_time_input(moment, UTC) == "14:30"

    def test_combine_in_business_zone(self):
        moment = combine_date_and_clock_time("2024-07-01", "09:00", NEW_YORK)
        assert moment.astimezone(UTC).hour == 13

    def test_format_midnight_and_noon(self):
        assert format_clock_time(datetime(2024, 1, 15, 0, 5, tzinfo=UTC), UTC) == "12:05 am"
        assert format_clock_time(datetime(2024, 1, 15, 12, 0, tzinfo=UTC), UTC) == "12:00 pm"

    def test_format_missing_time(self):
        assert format_clock_time(None) == EMPTY_CLOCK_TIME
        assert clock_time_input(None) == ""

    @pytest.mark.parametrize("value", ["9", "24:00", "12:60", "ab:cd", "1:2:3"])
    def test_parse_clock_time_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_clock_time(value)

    def test_parse_clock_time(self):
        assert parse_clock_time(" 08:05 ") == (8, 5)


class TestFormatting:
    """Test display helpers."""

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(0, "0h 0m"), (59, "0h 59m"), (60, "1h 0m"), (485, "8h 5m"), (-5, "0h 0m")],
    )
    def test_format_duration(self, minutes, expected):
        assert format_duration(minutes) == expected

    def test_format_date_for_display(self):
        assert format_date_for_display("2024-01-15") == "Mon, Jan 15"
        assert format_date_for_display("2024-03-01") == "Fri, Mar 1"


class TestCutoff:
    """Test the half-day cutoff check."""

    def test_before_cutoff(self):
        now = datetime(2024, 1, 15, 11, 59, tzinfo=UTC)
        assert is_before_cutoff("12:00", now, UTC) is True

    def test_at_cutoff_is_too_late(self):
        now = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
        assert is_before_cutoff("12:00", now, UTC) is False

    def test_cutoff_uses_business_zone(self):
        # 16:30 UTC is 11:30 in New York in January
        now = datetime(2024, 1, 15, 16, 30, tzinfo=UTC)
        assert is_before_cutoff("12:00", now, NEW_YORK) is True

    def test_invalid_cutoff_disallows(self):
        now = datetime(2024, 1, 15, 8, 0, tzinfo=UTC)
        assert is_before_cutoff("noon", now, UTC) is False
