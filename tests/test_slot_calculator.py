"""
Tests for slot calculator.
"""

from datetime import time

import pendulum
import pytest

from barberbook.domain.exceptions import ValidationError
from barberbook.domain.models import Reservation, ReservationStatus
from barberbook.domain.slot_calculator import SlotCalculator, anchor_date, day_of_week

TZ = "America/Sao_Paulo"
TEMPLATE = [time(9, 0), time(9, 30), time(10, 0), time(10, 30)]
TARGET = pendulum.date(2026, 11, 3)  # Tuesday


def _reservation(reservation_id: int, start: str, status=ReservationStatus.SCHEDULED) -> Reservation:
    """Reservation starting at a local wall-clock time, stored in UTC like the real store."""
    return Reservation(
        id=reservation_id,
        customer_id="c1",
        service_id=1,
        start=pendulum.parse(start, tz=TZ).in_timezone("UTC"),
        status=status,
    )


def _occupied(slots):
    return [slot.label for slot in slots if slot.is_occupied]


class TestAnchorDate:
    """Tests for date parsing and weekday numbering."""

    def test_weekday_numbering_starts_on_sunday(self):
        assert day_of_week(anchor_date("2026-11-01", TZ)) == 0
        assert day_of_week(anchor_date("2026-11-03", TZ)) == 2
        assert day_of_week(anchor_date("2026-11-07", TZ)) == 6

    @pytest.mark.parametrize("timezone", ["Pacific/Kiritimati", "Pacific/Pago_Pago", "UTC"])
    def test_weekday_is_stable_across_offsets(self, timezone):
        """Midday anchoring keeps the weekday the same for extreme UTC offsets."""
        anchor = anchor_date("2026-11-01", timezone)
        assert anchor.date() == pendulum.date(2026, 11, 1)
        assert day_of_week(anchor) == 0

    def test_invalid_date_raises(self):
        with pytest.raises(ValidationError):
            anchor_date("03/11/2026", TZ)


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def setup_method(self):
        self.calculator = SlotCalculator(timezone=TZ)
        # The day before the target, so the clock never blocks anything
        self.yesterday = pendulum.datetime(2026, 11, 2, 15, 0, tz=TZ)

    def test_all_free_without_reservations(self):
        slots = self.calculator.compute_slots(TARGET, TEMPLATE, [], self.yesterday)

        assert [slot.label for slot in slots] == ["09:00", "09:30", "10:00", "10:30"]
        assert _occupied(slots) == []

    def test_empty_template_yields_no_slots(self):
        reservations = [_reservation(1, "2026-11-03 10:00")]
        assert self.calculator.compute_slots(TARGET, [], reservations, self.yesterday) == []

    def test_reservation_occupies_its_start_slot(self):
        reservations = [_reservation(1, "2026-11-03 10:00")]

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, reservations, self.yesterday)

        assert _occupied(slots) == ["10:00"]

    def test_cancelled_reservation_does_not_occupy(self):
        reservations = [_reservation(1, "2026-11-03 10:00", status=ReservationStatus.CANCELLED)]

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, reservations, self.yesterday)

        assert _occupied(slots) == []

    def test_reservation_without_status_occupies(self):
        reservations = [_reservation(1, "2026-11-03 09:30", status=None)]

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, reservations, self.yesterday)

        assert _occupied(slots) == ["09:30"]

    def test_match_is_exact_to_the_second(self):
        reservations = [_reservation(1, "2026-11-03 10:00:30")]

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, reservations, self.yesterday)

        assert _occupied(slots) == []

    def test_reservation_on_another_date_is_ignored(self):
        reservations = [_reservation(1, "2026-11-04 10:00")]

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, reservations, self.yesterday)

        assert _occupied(slots) == []

    def test_late_evening_reservation_uses_local_date(self):
        """23:30 local is already the next day in UTC; it still belongs to the local date."""
        template = [time(23, 30)]
        reservations = [_reservation(1, "2026-11-03 23:30")]

        slots = self.calculator.compute_slots(TARGET, template, reservations, self.yesterday)

        assert _occupied(slots) == ["23:30"]

    def test_elapsed_slots_are_occupied_today(self):
        """On the current date, slots up to and including the current minute are taken."""
        now = pendulum.datetime(2026, 11, 3, 10, 0, tz=TZ)

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, [], now)

        assert _occupied(slots) == ["09:00", "09:30", "10:00"]

    def test_elapsed_check_uses_local_clock(self):
        # 12:15 UTC is 09:15 in Sao Paulo
        now = pendulum.datetime(2026, 11, 3, 12, 15, tz="UTC")

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, [], now)

        assert _occupied(slots) == ["09:00"]

    def test_future_date_ignores_clock(self):
        now = pendulum.datetime(2026, 11, 2, 23, 59, tz=TZ)

        slots = self.calculator.compute_slots(TARGET, TEMPLATE, [], now)

        assert _occupied(slots) == []

    def test_excluded_reservation_does_not_occupy(self):
        reservations = [
            _reservation(1, "2026-11-03 09:00"),
            _reservation(2, "2026-11-03 10:00"),
        ]

        slots = self.calculator.compute_slots(
            TARGET, TEMPLATE, reservations, self.yesterday, exclude_reservation_id=2
        )

        assert _occupied(slots) == ["09:00"]

    def test_find_slot_matches_to_the_minute(self):
        slots = self.calculator.compute_slots(TARGET, TEMPLATE, [], self.yesterday)

        assert self.calculator.find_slot(slots, time(10, 30)).label == "10:30"
        assert self.calculator.find_slot(slots, time(11, 0)) is None

    def test_monday_with_one_booking(self):
        template = [time(9, 0), time(9, 30), time(10, 0)]
        reservations = [_reservation(1, "2026-11-02 09:30")]
        now = pendulum.datetime(2026, 11, 1, 8, 0, tz=TZ)

        slots = self.calculator.compute_slots(pendulum.date(2026, 11, 2), template, reservations, now)

        assert [slot.is_occupied for slot in slots] == [False, True, False]
