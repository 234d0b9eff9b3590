"""
Generation of the weekly slot template from an opening window and interval.
"""

import re
from datetime import time
from typing import List

from .exceptions import ValidationError
from .models import WeeklySlot

_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")


def parse_clock_time(value: str) -> time:
    """
    Parse an ``HH:MM`` string.

    Raises:
        ValidationError: If the string is malformed or out of range
    """
    value = (value or "").strip()
    if not _TIME_PATTERN.match(value):
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM (e.g. 09:00).")

    hours, minutes = (int(part) for part in value.split(":"))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM (e.g. 09:00).")

    return time(hour=hours, minute=minutes)


def parse_interval(value: int | str) -> int:
    """
    Parse the slot interval in minutes.

    Raises:
        ValidationError: If the interval is not a positive integer
    """
    try:
        interval = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Interval must be a positive number of minutes.") from exc

    if interval <= 0:
        raise ValidationError("Interval must be a positive number of minutes.")
    return interval


def generate_slot_times(start: str, end: str, interval_minutes: int | str) -> List[time]:
    """
    Generate slot start times from ``start`` up to, but excluding, ``end``.

    Example: 09:00 - 18:00 every 30 minutes -> 09:00, 09:30, ..., 17:30

    Raises:
        ValidationError: On malformed times, non-positive interval or start >= end
    """
    start_time = parse_clock_time(start)
    end_time = parse_clock_time(end)
    interval = parse_interval(interval_minutes)

    start_minutes = start_time.hour * 60 + start_time.minute
    end_minutes = end_time.hour * 60 + end_time.minute

    if start_minutes >= end_minutes:
        raise ValidationError("Start time must be before end time.")

    return [
        time(hour=minutes // 60, minute=minutes % 60)
        for minutes in range(start_minutes, end_minutes, interval)
    ]


def build_weekly_slots(
    day_of_week: int,
    start: str,
    end: str,
    interval_minutes: int | str
) -> List[WeeklySlot]:
    """
    Build the template rows for one weekday.

    Raises:
        ValidationError: If the weekday or any window parameter is invalid
    """
    if day_of_week not in range(7):
        raise ValidationError(f"Day of week must be between 0 and 6, got {day_of_week}.")

    return [
        WeeklySlot(day_of_week=day_of_week, time_of_day=slot_time)
        for slot_time in generate_slot_times(start, end, interval_minutes)
    ]
