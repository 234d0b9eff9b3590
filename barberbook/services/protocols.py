"""
Protocols describing the store and auth behaviour needed by the services.

Dependency inversion toward these protocols lets the services run against the
hosted store adapters or the in-memory mock implementations alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.models import AuthUser, Profile, Reservation, ReservationStatus, Service, Session


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


AuthListener = Callable[[AuthEvent, Optional[Session]], Awaitable[None]]


@dataclass(frozen=True)
class SignUpResult:
    """Outcome of a sign-up; ``user`` is None while e-mail confirmation is pending."""
    user: Optional[AuthUser]
    session: Optional[Session] = None

    @property
    def needs_confirmation(self) -> bool:
        return self.user is None


class StoreProtocol(Protocol):
    """Remote tables used by the booking and admin flows."""

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        """Return the profile row, or None when it does not exist yet."""

    async def insert_profile(self, profile: Profile) -> None:
        """Create the profile row for a freshly signed-up user."""

    async def list_services(self) -> List[Service]:
        """All services ordered by id."""

    async def fetch_service(self, service_id: int) -> Service:
        """Return one service or raise NotFoundError."""

    async def fetch_template_times(self, day_of_week: int) -> List[time]:
        """Template times for a weekday, ascending."""

    async def replace_template(self, day_of_week: int, times: Sequence[time]) -> int:
        """Atomically replace a weekday's template; return the number of rows written."""

    async def fetch_reservations_between(
        self,
        start: DateTime,
        end: DateTime,
        include_cancelled: bool = False,
    ) -> List[Reservation]:
        """Reservations starting within [start, end], ordered by start."""

    async def fetch_reservation(self, reservation_id: int) -> Reservation:
        """Return one reservation or raise NotFoundError."""

    async def fetch_customer_reservations(self, customer_id: str) -> List[Reservation]:
        """A customer's reservations ordered by start."""

    async def fetch_all_reservations(self) -> List[Reservation]:
        """Every reservation joined with service and customer."""

    async def insert_reservation(
        self,
        customer_id: str,
        service_id: int,
        start: DateTime,
        end: DateTime,
        status: ReservationStatus = ReservationStatus.SCHEDULED,
    ) -> Reservation:
        """Create a reservation and return it."""

    async def reschedule_reservation(
        self,
        reservation_id: int,
        customer_id: str,
        service_id: int,
        start: DateTime,
        end: DateTime,
    ) -> None:
        """Move a customer's reservation and reset it to scheduled."""

    async def set_reservation_status(self, reservation_id: int, status: ReservationStatus) -> None:
        """Change a reservation's status."""

    async def delete_reservation(self, reservation_id: int) -> None:
        """Hard-delete a reservation."""


class AuthClientProtocol(Protocol):
    """Authentication operations plus the auth-change subscription."""

    @property
    def session(self) -> Optional[Session]:
        """The current session, if signed in."""

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Subscribe to auth events; returns the unsubscribe callable."""

    async def restore_session(self) -> Optional[Session]:
        """Load the persisted session and emit INITIAL_SESSION."""

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        """Register a new user."""

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Sign in and emit SIGNED_IN."""

    async def sign_out(self) -> None:
        """Sign out and emit SIGNED_OUT."""

    async def reset_password_for_email(self, email: str) -> None:
        """Ask the auth service to send a password-reset e-mail."""

    async def get_user(self) -> Optional[AuthUser]:
        """The user behind the current session, if any."""
