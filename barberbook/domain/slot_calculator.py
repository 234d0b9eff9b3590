"""
Core business logic for computing bookable slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from datetime import time
from typing import Iterable, List, Optional, Sequence, Set

import pendulum
from pendulum import Date, DateTime

from .exceptions import ValidationError
from .models import Reservation, SlotView


def anchor_date(date_str: str, timezone: str) -> DateTime:
    """
    Parse a ``YYYY-MM-DD`` string into a midday DateTime in ``timezone``.

    Anchoring at 12:00 keeps the weekday stable regardless of UTC offset.

    Raises:
        ValidationError: If the string is not a valid calendar date
    """
    try:
        return pendulum.from_format(f"{date_str.strip()} 12:00", "YYYY-MM-DD HH:mm", tz=timezone)
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{date_str}'. Use YYYY-MM-DD.") from exc


def day_of_week(target: DateTime | Date) -> int:
    """Return the store weekday (0=Sunday ... 6=Saturday) of a date."""
    return target.isoweekday() % 7


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


class SlotCalculator:
    """
    Flags each slot of a weekly template as free or occupied on a given date.

    Algorithm:
    1. Convert "now" to the shop's local date and minute of day
    2. Collect the local start times of active reservations on the target date
    3. A slot is occupied if a reservation starts exactly at it (to the second)
    4. On the current date, a slot is also occupied once its minute of day
       is less than or equal to the current minute of day
    5. Return one SlotView per template entry, in template order
    """

    def __init__(self, timezone: str = "America/Sao_Paulo"):
        self.timezone = timezone

    def compute_slots(
        self,
        target_date: Date,
        template_times: Sequence[time],
        reservations: Iterable[Reservation],
        now: DateTime,
        exclude_reservation_id: Optional[int] = None
    ) -> List[SlotView]:
        """
        Compute the slot list for one calendar date.

        Args:
            target_date: Local calendar date being queried
            template_times: Template times for the date's weekday, ascending
            reservations: Reservations on (or around) the date; cancelled ones are ignored
            now: Current moment, any timezone
            exclude_reservation_id: Reservation to ignore (the one being rescheduled)

        Returns:
            List of SlotView objects, one per template entry
        """
        if not template_times:
            return []

        # Step 1: Local "now"
        local_now = now.in_timezone(self.timezone)
        is_today = local_now.date() == target_date
        now_minutes = local_now.hour * 60 + local_now.minute

        # Step 2: Reserved wall-clock times on the target date
        reserved = self._reserved_times(target_date, reservations, exclude_reservation_id)

        # Steps 3-5
        slots: List[SlotView] = []
        for slot_time in template_times:
            occupied_by_reservation = self._normalize(slot_time) in reserved
            occupied_by_clock = is_today and minute_of_day(slot_time) <= now_minutes
            slots.append(
                SlotView(
                    time_of_day=slot_time,
                    is_occupied=occupied_by_reservation or occupied_by_clock
                )
            )

        return slots

    def find_slot(self, slots: Sequence[SlotView], wanted: time) -> SlotView | None:
        """Return the slot matching ``wanted`` to the minute, if the template offers it."""
        for slot in slots:
            if minute_of_day(slot.time_of_day) == minute_of_day(wanted):
                return slot
        return None

    def _reserved_times(
        self,
        target_date: Date,
        reservations: Iterable[Reservation],
        exclude_reservation_id: Optional[int]
    ) -> Set[time]:
        reserved: Set[time] = set()

        for reservation in reservations:
            if reservation.is_cancelled:
                continue
            if exclude_reservation_id is not None and reservation.id == exclude_reservation_id:
                continue

            local_start = reservation.local_start(self.timezone)
            if local_start.date() != target_date:
                continue

            reserved.add(self._normalize(local_start.time()))

        return reserved

    @staticmethod
    def _normalize(value: time) -> time:
        # Compare plain wall-clock values, second precision
        return time(value.hour, value.minute, value.second)
