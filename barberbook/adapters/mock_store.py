"""
In-memory store and auth client for running without the hosted backend.

The mock implementations load realistic data from mock_data.json so the CLI
can be exercised (``--mock``) without credentials or network access.
"""

import json
import logging
import uuid
from dataclasses import replace
from datetime import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, NotFoundError
from ..domain.models import AuthUser, Profile, Reservation, ReservationStatus, Service, Session
from ..services.protocols import AuthEvent, AuthListener, SignUpResult
from .auth_client import ListenerRegistry
from .supabase_store import parse_profile, parse_reservation, parse_service, parse_time_of_day

logger = logging.getLogger(__name__)

DEFAULT_FIXTURE = Path(__file__).parent / "mock_data.json"


def load_fixture(path: Path = DEFAULT_FIXTURE) -> Dict[str, Any]:
    """Load mock data from a JSON file; missing file yields empty data."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class InMemoryStore:
    """
    Store that keeps every table in memory.

    Implements StoreProtocol; joins are resolved on read, like the hosted store does.
    """

    def __init__(
        self,
        services: Sequence[Service] = (),
        profiles: Sequence[Profile] = (),
        template: Optional[Dict[int, List[time]]] = None,
        reservations: Sequence[Reservation] = ()
    ):
        self.services: Dict[int, Service] = {s.id: s for s in services}
        self.profiles: Dict[str, Profile] = {p.id: p for p in profiles}
        self.template: Dict[int, List[time]] = {
            day: sorted(times) for day, times in (template or {}).items()
        }
        self.reservations: Dict[int, Reservation] = {r.id: r for r in reservations}
        self._next_id = max(self.reservations, default=0) + 1

    @classmethod
    def from_fixture(cls, data: Dict[str, Any]) -> "InMemoryStore":
        template: Dict[int, List[time]] = {}
        for row in data.get("horarios_disponiveis", []):
            template.setdefault(int(row["dia_da_semana"]), []).append(
                parse_time_of_day(row["horario"])
            )

        reservations = [parse_reservation(row) for row in data.get("agendamentos", [])]

        return cls(
            services=[parse_service(row) for row in data.get("servicos", [])],
            profiles=[parse_profile(row) for row in data.get("profiles", [])],
            template=template,
            reservations=[r for r in reservations if r is not None],
        )

    def _joined(self, reservation: Reservation) -> Reservation:
        service = self.services.get(reservation.service_id) if reservation.service_id else None
        profile = self.profiles.get(reservation.customer_id)
        return replace(
            reservation,
            service=service,
            customer_name=profile.name if profile else None,
        )

    def _sorted(self, reservations) -> List[Reservation]:
        return [self._joined(r) for r in sorted(reservations, key=lambda r: r.start)]

    def _get(self, reservation_id: int) -> Reservation:
        try:
            return self.reservations[reservation_id]
        except KeyError:
            raise NotFoundError(f"Reservation {reservation_id} not found") from None

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        return self.profiles.get(user_id)

    async def insert_profile(self, profile: Profile) -> None:
        self.profiles[profile.id] = profile

    async def list_services(self) -> List[Service]:
        return [self.services[key] for key in sorted(self.services)]

    async def fetch_service(self, service_id: int) -> Service:
        try:
            return self.services[service_id]
        except KeyError:
            raise NotFoundError(f"Service {service_id} not found") from None

    async def fetch_template_times(self, day_of_week: int) -> List[time]:
        return list(self.template.get(day_of_week, []))

    async def replace_template(self, day_of_week: int, times: Sequence[time]) -> int:
        self.template[day_of_week] = sorted(times)
        return len(times)

    async def fetch_reservations_between(
        self,
        start: DateTime,
        end: DateTime,
        include_cancelled: bool = False,
    ) -> List[Reservation]:
        return self._sorted(
            r for r in self.reservations.values()
            if start <= r.start <= end and (include_cancelled or not r.is_cancelled)
        )

    async def fetch_reservation(self, reservation_id: int) -> Reservation:
        return self._joined(self._get(reservation_id))

    async def fetch_customer_reservations(self, customer_id: str) -> List[Reservation]:
        return self._sorted(r for r in self.reservations.values() if r.customer_id == customer_id)

    async def fetch_all_reservations(self) -> List[Reservation]:
        return [self._joined(r) for r in self.reservations.values()]

    async def insert_reservation(
        self,
        customer_id: str,
        service_id: int,
        start: DateTime,
        end: DateTime,
        status: ReservationStatus = ReservationStatus.SCHEDULED,
    ) -> Reservation:
        reservation = Reservation(
            id=self._next_id,
            customer_id=customer_id,
            service_id=service_id,
            start=start.in_timezone("UTC"),
            end=end.in_timezone("UTC"),
            status=status,
        )
        self.reservations[reservation.id] = reservation
        self._next_id += 1
        return self._joined(reservation)

    async def reschedule_reservation(
        self,
        reservation_id: int,
        customer_id: str,
        service_id: int,
        start: DateTime,
        end: DateTime,
    ) -> None:
        current = self._get(reservation_id)
        if current.customer_id != customer_id:
            raise NotFoundError(f"Reservation {reservation_id} not found for this customer")
        self.reservations[reservation_id] = replace(
            current,
            service_id=service_id,
            start=start.in_timezone("UTC"),
            end=end.in_timezone("UTC"),
            status=ReservationStatus.SCHEDULED,
            raw_status=None,
        )

    async def set_reservation_status(self, reservation_id: int, status: ReservationStatus) -> None:
        current = self._get(reservation_id)
        self.reservations[reservation_id] = replace(current, status=status, raw_status=None)

    async def delete_reservation(self, reservation_id: int) -> None:
        self._get(reservation_id)
        del self.reservations[reservation_id]


class MockAuthClient:
    """
    Auth client that checks credentials against an in-memory user list.

    Implements AuthClientProtocol without any network access.
    """

    def __init__(
        self,
        users: Optional[Dict[str, Dict[str, str]]] = None,
        initial_email: Optional[str] = None
    ):
        """
        Args:
            users: Mapping of e-mail -> {"id": ..., "password": ...}
            initial_email: User whose session restore_session() brings back
        """
        self.users: Dict[str, Dict[str, str]] = dict(users or {})
        self.initial_email = initial_email
        self.reset_requests: List[str] = []
        self._session: Optional[Session] = None
        self._listeners = ListenerRegistry()

    @classmethod
    def from_fixture(cls, data: Dict[str, Any]) -> "MockAuthClient":
        users = {
            entry["email"]: {"id": entry["id"], "password": entry.get("password", "")}
            for entry in data.get("users", [])
        }
        return cls(users=users, initial_email=data.get("current_user"))

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def current_access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    def _session_for(self, email: str) -> Session:
        user = self.users[email]
        return Session(
            access_token=f"mock-token-{user['id']}",
            user=AuthUser(id=user["id"], email=email),
        )

    async def restore_session(self) -> Optional[Session]:
        if self.initial_email and self.initial_email in self.users:
            self._session = self._session_for(self.initial_email)
        await self._listeners.emit(AuthEvent.INITIAL_SESSION, self._session)
        return self._session

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        if email in self.users:
            raise AuthenticationError("User already registered")
        self.users[email] = {"id": str(uuid.uuid4()), "password": password}
        session = self._session_for(email)
        self._session = session
        await self._listeners.emit(AuthEvent.SIGNED_IN, session)
        return SignUpResult(user=session.user, session=session)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        user = self.users.get(email)
        if user is None or user["password"] != password:
            raise AuthenticationError("Invalid login credentials")
        self._session = self._session_for(email)
        await self._listeners.emit(AuthEvent.SIGNED_IN, self._session)
        return self._session

    async def sign_out(self) -> None:
        self._session = None
        await self._listeners.emit(AuthEvent.SIGNED_OUT, None)

    async def reset_password_for_email(self, email: str) -> None:
        self.reset_requests.append(email)

    async def get_user(self) -> Optional[AuthUser]:
        return self._session.user if self._session else None
