"""
Tests for weekly template generation.
"""

from datetime import time

import pytest

from barberbook.domain.exceptions import ValidationError
from barberbook.domain.template_builder import (
    build_weekly_slots,
    generate_slot_times,
    parse_clock_time,
    parse_interval,
)


class TestGenerateSlotTimes:
    """Tests for generate_slot_times."""

    def test_full_day_every_half_hour(self):
        times = generate_slot_times("09:00", "18:00", 30)

        assert len(times) == 18
        assert times[0] == time(9, 0)
        assert times[-1] == time(17, 30)

    def test_end_is_excluded(self):
        assert generate_slot_times("09:00", "10:00", 45) == [time(9, 0), time(9, 45)]
        assert generate_slot_times("09:00", "10:00", 60) == [time(9, 0)]

    def test_interval_may_be_a_string(self):
        assert generate_slot_times("14:00", "15:00", "20") == [time(14, 0), time(14, 20), time(14, 40)]

    @pytest.mark.parametrize("start,end", [("10:00", "10:00"), ("18:00", "09:00")])
    def test_start_must_precede_end(self, start, end):
        with pytest.raises(ValidationError, match="before end"):
            generate_slot_times(start, end, 30)

    @pytest.mark.parametrize("interval", [0, -15, "abc", None])
    def test_invalid_interval(self, interval):
        with pytest.raises(ValidationError):
            generate_slot_times("09:00", "18:00", interval)


class TestParsing:

    def test_parse_clock_time(self):
        assert parse_clock_time(" 08:05 ") == time(8, 5)

    @pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "noon", ""])
    def test_parse_clock_time_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            parse_clock_time(value)

    def test_parse_interval(self):
        assert parse_interval("15") == 15


class TestBuildWeeklySlots:

    def test_rows_carry_the_weekday(self):
        slots = build_weekly_slots(6, "09:00", "10:00", 30)

        assert [(s.day_of_week, s.time_of_day) for s in slots] == [(6, time(9, 0)), (6, time(9, 30))]

    @pytest.mark.parametrize("day", [-1, 7])
    def test_rejects_invalid_weekday(self, day):
        with pytest.raises(ValidationError, match="between 0 and 6"):
            build_weekly_slots(day, "09:00", "10:00", 30)
