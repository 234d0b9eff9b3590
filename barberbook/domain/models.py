"""
Domain models for the barbershop agenda: services, profiles, weekly slots
and reservations.
"""

from dataclasses import dataclass
from datetime import time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import pendulum
from pendulum import DateTime


DEFAULT_DURATION_MINUTES = 30

# Remote store weekday convention: 0=Sunday, 6=Saturday
WEEKDAY_LABELS = {
    0: "Dom",
    1: "Seg",
    2: "Ter",
    3: "Qua",
    4: "Qui",
    5: "Sex",
    6: "Sáb",
}


class UserType(str, Enum):
    """Role stored in ``profiles.tipo_usuario``."""
    ADMIN = "adm"
    CUSTOMER = "cliente"


class ReservationStatus(str, Enum):
    """Lifecycle states stored in ``agendamentos.status``."""
    SCHEDULED = "agendado"
    CONFIRMED = "confirmado"
    COMPLETED = "concluido"
    CANCELLED = "cancelado"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ReservationStatus"]:
        """
        Parse a raw status value.

        Returns None for a missing or blank status.

        Raises:
            ValueError: If the value is not a known status
        """
        if value is None or not str(value).strip():
            return None
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class Service:
    """A bookable service (haircut, beard, ...)."""
    id: int
    name: str
    price: Decimal = Decimal("0")
    description: str = ""
    duration_minutes: Optional[int] = None

    def effective_duration(self, default: int = DEFAULT_DURATION_MINUTES) -> int:
        """Duration used to compute a reservation's end; falls back when unset or zero."""
        return self.duration_minutes or default


@dataclass(frozen=True)
class Profile:
    """Application profile attached to an authenticated user."""
    id: str
    name: str
    user_type: UserType = UserType.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.user_type is UserType.ADMIN


@dataclass(frozen=True)
class WeeklySlot:
    """
    One entry of the weekly template.

    Invariant: day_of_week is between 0 (Sunday) and 6 (Saturday).
    """
    day_of_week: int
    time_of_day: time

    def __post_init__(self):
        if self.day_of_week not in range(7):
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")


@dataclass
class Reservation:
    """
    A customer's booking of a service.

    ``start`` and ``end`` are timezone-aware; the store keeps them in UTC.
    ``service`` and ``customer_name`` are only filled when the query joined them.
    """
    id: int
    customer_id: str
    service_id: Optional[int]
    start: DateTime
    end: Optional[DateTime] = None
    status: Optional[ReservationStatus] = None
    service: Optional[Service] = None
    customer_name: Optional[str] = None
    # Stored status value when it is not one of ReservationStatus
    raw_status: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status is ReservationStatus.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self.status is ReservationStatus.CANCELLED

    @property
    def price(self) -> Decimal:
        """Price of the joined service, 0 when the service is gone."""
        if self.service is None:
            return Decimal("0")
        return self.service.price

    def local_start(self, timezone: str) -> DateTime:
        return self.start.in_timezone(timezone)

    def format_display(self, timezone: str) -> str:
        """
        Format the reservation for display.
        Format: Weekday, DD/MM/YYYY às HH:mm
        """
        weekday_names = {
            0: "Segunda-feira",
            1: "Terça-feira",
            2: "Quarta-feira",
            3: "Quinta-feira",
            4: "Sexta-feira",
            5: "Sábado",
            6: "Domingo",
        }
        start = self.local_start(timezone)
        weekday = weekday_names[start.weekday()]
        return f"{weekday}, {start.format('DD/MM/YYYY')} às {start.format('HH:mm')}"


@dataclass(frozen=True)
class SlotView:
    """A template slot on a concrete date, flagged free or occupied. Never stored."""
    time_of_day: time
    is_occupied: bool

    @property
    def label(self) -> str:
        return self.time_of_day.strftime("%H:%M")


@dataclass(frozen=True)
class AuthUser:
    """Identity returned by the auth service."""
    id: str
    email: str = ""


@dataclass
class Session:
    """Authenticated session as issued by the auth service."""
    access_token: str
    user: AuthUser
    refresh_token: str = ""
    expires_at: Optional[int] = None

    def is_expired(self, now: Optional[DateTime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or pendulum.now("UTC")
        return now.int_timestamp >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": {"id": self.user.id, "email": self.user.email},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """
        Build a session from an auth payload or a persisted dict.

        Raises:
            ValueError: If the payload has no access token or user id
        """
        user_data = data.get("user") or {}
        if not data.get("access_token") or not user_data.get("id"):
            raise ValueError("Session payload is missing access_token or user id")
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_at=int(expires_at) if expires_at is not None else None,
            user=AuthUser(id=user_data["id"], email=user_data.get("email") or ""),
        )
