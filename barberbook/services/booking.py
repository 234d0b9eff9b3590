"""
Application services for the customer booking flows.

The service coordinates fetching the weekly template and reservations via a
store adapter and delegates the availability rules to the domain-level
``SlotCalculator`` and ``ModificationPolicy``.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import NotFoundError, SlotUnavailableError, ValidationError
from ..domain.models import (
    DEFAULT_DURATION_MINUTES,
    Reservation,
    Service,
    SlotView,
)
from ..domain.policies import ModificationPolicy
from ..domain.slot_calculator import SlotCalculator, anchor_date, day_of_week
from ..domain.template_builder import parse_clock_time
from .protocols import StoreProtocol

logger = logging.getLogger(__name__)


class BookingService:
    """
    Orchestrates slot lookup, booking, rescheduling and cancellation.

    ``clock`` returns the current moment; it is injectable so tests can pin "now".
    """

    def __init__(
        self,
        store: StoreProtocol,
        slot_calculator: SlotCalculator,
        policy: ModificationPolicy,
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._store = store
        self._slot_calculator = slot_calculator
        self._policy = policy
        self._default_duration = default_duration_minutes
        self._clock = clock or (lambda: pendulum.now(slot_calculator.timezone))

    @property
    def timezone(self) -> str:
        return self._slot_calculator.timezone

    async def list_services(self) -> List[Service]:
        return await self._store.list_services()

    async def available_slots(
        self,
        date_str: str,
        *,
        exclude_reservation_id: Optional[int] = None,
    ) -> List[SlotView]:
        """
        Fetch the template and the day's reservations, then flag each slot.

        Args:
            date_str: Calendar date as YYYY-MM-DD
            exclude_reservation_id: Reservation being rescheduled, never counted as occupying

        Returns:
            One SlotView per template entry; empty when the weekday has no template
        """
        anchor = anchor_date(date_str, self.timezone)

        template_times = await self._store.fetch_template_times(day_of_week(anchor))
        if not template_times:
            return []

        day_start, day_end = self._day_bounds(anchor)
        reservations = await self._store.fetch_reservations_between(day_start, day_end)

        return self._slot_calculator.compute_slots(
            target_date=anchor.date(),
            template_times=template_times,
            reservations=reservations,
            now=self._clock(),
            exclude_reservation_id=exclude_reservation_id,
        )

    async def book(
        self,
        *,
        customer_id: str,
        service_id: int,
        date_str: str,
        time_str: str,
    ) -> Reservation:
        """
        Create a scheduled reservation on a free slot.

        Raises:
            ValidationError: On a malformed date or time, or a date before today
            SlotUnavailableError: If the slot is occupied or not offered that day
            NotFoundError: If the service does not exist
        """
        start = self._slot_start(date_str, time_str)
        await self._ensure_slot_free(date_str, start, exclude_reservation_id=None)

        service = await self._store.fetch_service(service_id)
        end = start.add(minutes=service.effective_duration(self._default_duration))

        reservation = await self._store.insert_reservation(
            customer_id=customer_id,
            service_id=service.id,
            start=start,
            end=end,
        )
        logger.info("Booked reservation %s for %s at %s", reservation.id, customer_id, start)
        return reservation

    async def reschedule(
        self,
        *,
        reservation_id: int,
        customer_id: str,
        service_id: int,
        date_str: str,
        time_str: str,
    ) -> Reservation:
        """
        Move a customer's reservation to another free slot.

        Raises:
            ModificationNotAllowedError: Inside the edit window or already completed
            ValidationError: If the new date is before today
            SlotUnavailableError: If the new slot is taken
            NotFoundError: If the reservation is not the customer's
        """
        current = await self._fetch_own_reservation(reservation_id, customer_id)
        self._policy.ensure_customer_can_modify(current, self._clock())

        start = self._slot_start(date_str, time_str)
        await self._ensure_slot_free(date_str, start, exclude_reservation_id=reservation_id)

        service = await self._store.fetch_service(service_id)
        end = start.add(minutes=service.effective_duration(self._default_duration))

        await self._store.reschedule_reservation(
            reservation_id=reservation_id,
            customer_id=customer_id,
            service_id=service.id,
            start=start,
            end=end,
        )
        logger.info("Rescheduled reservation %s to %s", reservation_id, start)
        return await self._store.fetch_reservation(reservation_id)

    async def cancel(self, *, reservation_id: int, customer_id: str) -> Reservation:
        """
        Cancel (delete) a customer's reservation.

        Raises:
            ModificationNotAllowedError: Inside the edit window or already completed
            NotFoundError: If the reservation is not the customer's
        """
        reservation = await self._fetch_own_reservation(reservation_id, customer_id)
        self._policy.ensure_customer_can_modify(reservation, self._clock())

        await self._store.delete_reservation(reservation_id)
        logger.info("Customer %s cancelled reservation %s", customer_id, reservation_id)
        return reservation

    async def my_reservations(self, customer_id: str) -> List[Reservation]:
        return await self._store.fetch_customer_reservations(customer_id)

    def can_modify(self, reservation: Reservation) -> bool:
        return self._policy.can_customer_modify(reservation, self._clock())

    async def _fetch_own_reservation(self, reservation_id: int, customer_id: str) -> Reservation:
        reservation = await self._store.fetch_reservation(reservation_id)
        if reservation.customer_id != customer_id:
            raise NotFoundError(f"Reservation {reservation_id} not found for this customer")
        return reservation

    async def _ensure_slot_free(
        self,
        date_str: str,
        start: DateTime,
        exclude_reservation_id: Optional[int],
    ) -> None:
        today = self._clock().in_timezone(self.timezone).date()
        if start.date() < today:
            raise ValidationError(f"Não é possível agendar em uma data passada ({date_str}).")

        slots = await self.available_slots(date_str, exclude_reservation_id=exclude_reservation_id)
        slot = self._slot_calculator.find_slot(slots, start.time())

        if slot is None:
            raise SlotUnavailableError(
                f"O horário {start.format('HH:mm')} não é oferecido em {date_str}."
            )
        if slot.is_occupied:
            raise SlotUnavailableError(
                f"O horário {slot.label} de {date_str} não está disponível."
            )

    def _slot_start(self, date_str: str, time_str: str) -> DateTime:
        anchor = anchor_date(date_str, self.timezone)
        wanted = parse_clock_time(time_str)
        return anchor.set(hour=wanted.hour, minute=wanted.minute, second=0, microsecond=0)

    def _day_bounds(self, anchor: DateTime) -> Tuple[DateTime, DateTime]:
        return anchor.start_of("day"), anchor.end_of("day")
