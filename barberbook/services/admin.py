"""
Application services for the admin flows: daily agenda, completion,
cancellation, weekly template and dashboard.
"""

from __future__ import annotations

import logging
from datetime import time
from typing import Callable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.dashboard import DashboardReport, build_dashboard
from ..domain.models import Reservation, ReservationStatus
from ..domain.policies import ModificationPolicy
from ..domain.template_builder import build_weekly_slots
from .protocols import StoreProtocol

logger = logging.getLogger(__name__)


class AdminService:
    """Admin operations over the shared store."""

    def __init__(
        self,
        store: StoreProtocol,
        policy: ModificationPolicy,
        timezone: str,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._store = store
        self._policy = policy
        self.timezone = timezone
        self._clock = clock or (lambda: pendulum.now(timezone))

    async def todays_reservations(self) -> List[Reservation]:
        """Reservations starting within the current local day, ordered by start."""
        today = self._clock().in_timezone(self.timezone)
        return await self._store.fetch_reservations_between(
            today.start_of("day"),
            today.end_of("day"),
            include_cancelled=True,
        )

    async def complete(self, reservation_id: int) -> Reservation:
        """
        Mark a reservation as completed.

        Raises:
            ModificationNotAllowedError: If it is already completed
            NotFoundError: If it does not exist
        """
        reservation = await self._store.fetch_reservation(reservation_id)
        self._policy.ensure_admin_can_complete(reservation)

        await self._store.set_reservation_status(reservation_id, ReservationStatus.COMPLETED)
        logger.info("Reservation %s marked as completed", reservation_id)
        return await self._store.fetch_reservation(reservation_id)

    async def cancel(self, reservation_id: int) -> Reservation:
        """
        Cancel (delete) a reservation that is not completed.

        Raises:
            ModificationNotAllowedError: If it is already completed
            NotFoundError: If it does not exist
        """
        reservation = await self._store.fetch_reservation(reservation_id)
        self._policy.ensure_admin_can_cancel(reservation)

        await self._store.delete_reservation(reservation_id)
        logger.info("Admin cancelled reservation %s", reservation_id)
        return reservation

    async def regenerate_weekly_template(
        self,
        day_of_week: int,
        start: str,
        end: str,
        interval_minutes: int | str,
    ) -> List[time]:
        """
        Replace a weekday's template with evenly spaced slots.

        Validation happens before the store is touched; the replacement itself
        is a single atomic server-side operation.

        Raises:
            ValidationError: On a bad weekday, time format, interval or window
        """
        slots = build_weekly_slots(day_of_week, start, end, interval_minutes)
        times = [slot.time_of_day for slot in slots]

        written = await self._store.replace_template(day_of_week, times)
        logger.info("Weekly template for day %s replaced with %s slots", day_of_week, written)
        return times

    async def dashboard(self) -> DashboardReport:
        reservations = await self._store.fetch_all_reservations()
        return build_dashboard(reservations, self._clock(), self.timezone)
