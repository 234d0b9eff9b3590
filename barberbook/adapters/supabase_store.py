"""
Store adapter mapping the hosted tables to domain models.

Tables:
    profiles              (id, nome, tipo_usuario)
    servicos              (id, nome, descricao, preco, duracao_minutos)
    horarios_disponiveis  (dia_da_semana, horario)
    agendamentos          (id, cliente_id, servico_id, data_hora_inicio, data_hora_fim, status)
"""

import asyncio
import logging
from datetime import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import NotFoundError, StoreError
from ..domain.models import Profile, Reservation, ReservationStatus, Service, UserType
from .rest_client import RestClient, any_of, eq, gte, lte

logger = logging.getLogger(__name__)

PROFILES = "profiles"
SERVICES = "servicos"
TEMPLATE = "horarios_disponiveis"
RESERVATIONS = "agendamentos"
REPLACE_TEMPLATE_FUNCTION = "replace_horarios_disponiveis"

RESERVATION_COLUMNS = """
    id,
    cliente_id,
    servico_id,
    data_hora_inicio,
    data_hora_fim,
    status,
    servicos ( id, nome, preco, duracao_minutos ),
    profiles ( nome )
"""


def to_store_timestamp(value: DateTime) -> str:
    """Render a DateTime as the UTC ISO 8601 string the store expects."""
    return value.in_timezone("UTC").to_iso8601_string()


def parse_timestamp(value: Any) -> DateTime:
    """
    Parse a store timestamp into a timezone-aware DateTime.

    Raises:
        ValueError: If the value is missing or not a datetime
    """
    if not value:
        raise ValueError("missing timestamp")
    parsed = pendulum.parse(str(value))
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed


def parse_price(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning("Ignoring malformed price %r", value)
        return Decimal("0")


def parse_service(row: Dict[str, Any]) -> Service:
    return Service(
        id=int(row["id"]),
        name=row.get("nome") or "",
        price=parse_price(row.get("preco")),
        description=row.get("descricao") or "",
        duration_minutes=row.get("duracao_minutos"),
    )


def parse_profile(row: Dict[str, Any]) -> Profile:
    try:
        user_type = UserType(row.get("tipo_usuario") or UserType.CUSTOMER.value)
    except ValueError:
        logger.warning("Unknown user type %r for profile %s", row.get("tipo_usuario"), row.get("id"))
        user_type = UserType.CUSTOMER
    return Profile(id=str(row["id"]), name=row.get("nome") or "", user_type=user_type)


def parse_time_of_day(value: str) -> time:
    return time.fromisoformat(str(value))


def parse_reservation(row: Dict[str, Any]) -> Optional[Reservation]:
    """
    Map an ``agendamentos`` row (optionally with embedded joins) to a Reservation.

    Returns None for rows whose start timestamp cannot be parsed; they are
    logged and skipped rather than failing the whole query.
    """
    try:
        start = parse_timestamp(row.get("data_hora_inicio"))
    except ValueError as exc:
        logger.warning("Skipping reservation %s with malformed start: %s", row.get("id"), exc)
        return None

    end: Optional[DateTime] = None
    if row.get("data_hora_fim"):
        try:
            end = parse_timestamp(row["data_hora_fim"])
        except ValueError as exc:
            logger.warning("Ignoring malformed end of reservation %s: %s", row.get("id"), exc)

    raw_status = None
    try:
        status = ReservationStatus.parse(row.get("status"))
    except ValueError:
        logger.warning("Unknown status %r on reservation %s", row.get("status"), row.get("id"))
        status = None
        raw_status = str(row["status"]).strip().lower()

    service_row = row.get("servicos")
    service = None
    if isinstance(service_row, dict) and service_row.get("id") is not None:
        service = parse_service(service_row)
    elif isinstance(service_row, dict):
        service = Service(
            id=int(row.get("servico_id") or 0),
            name=service_row.get("nome") or "",
            price=parse_price(service_row.get("preco")),
        )

    profile_row = row.get("profiles")
    customer_name = profile_row.get("nome") if isinstance(profile_row, dict) else None

    return Reservation(
        id=int(row["id"]),
        customer_id=str(row.get("cliente_id") or ""),
        service_id=row.get("servico_id"),
        start=start,
        end=end,
        status=status,
        service=service,
        customer_name=customer_name,
        raw_status=raw_status,
    )


def parse_reservations(rows: Sequence[Dict[str, Any]]) -> List[Reservation]:
    reservations = (parse_reservation(row) for row in rows)
    return [reservation for reservation in reservations if reservation is not None]


class SupabaseStore:
    """
    Async store adapter on top of the blocking RestClient.

    Implements StoreProtocol.
    """

    def __init__(self, client: RestClient):
        self._client = client

    async def _call(self, method, *args, **kwargs):
        return await asyncio.to_thread(method, *args, **kwargs)

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        rows = await self._call(
            self._client.select,
            PROFILES,
            "id, nome, tipo_usuario",
            filters=[eq("id", user_id)],
            limit=1,
        )
        # No row yet is a normal state right after sign-up
        return parse_profile(rows[0]) if rows else None

    async def insert_profile(self, profile: Profile) -> None:
        await self._call(
            self._client.insert,
            PROFILES,
            {"id": profile.id, "nome": profile.name, "tipo_usuario": profile.user_type.value},
        )

    async def list_services(self) -> List[Service]:
        rows = await self._call(self._client.select, SERVICES, "*", order="id")
        return [parse_service(row) for row in rows]

    async def fetch_service(self, service_id: int) -> Service:
        rows = await self._call(
            self._client.select, SERVICES, "*", filters=[eq("id", service_id)], limit=1
        )
        if not rows:
            raise NotFoundError(f"Service {service_id} not found")
        return parse_service(rows[0])

    async def fetch_template_times(self, day_of_week: int) -> List[time]:
        rows = await self._call(
            self._client.select,
            TEMPLATE,
            "horario",
            filters=[eq("dia_da_semana", day_of_week)],
            order="horario",
        )
        times: List[time] = []
        for row in rows:
            try:
                times.append(parse_time_of_day(row["horario"]))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed template row %r: %s", row, exc)
        return times

    async def replace_template(self, day_of_week: int, times: Sequence[time]) -> int:
        result = await self._call(
            self._client.rpc,
            REPLACE_TEMPLATE_FUNCTION,
            {
                "p_dia_da_semana": day_of_week,
                "p_horarios": [t.strftime("%H:%M:%S") for t in times],
            },
        )
        if isinstance(result, int):
            return result
        return len(times)

    async def fetch_reservations_between(
        self,
        start: DateTime,
        end: DateTime,
        include_cancelled: bool = False,
    ) -> List[Reservation]:
        filters = [
            gte("data_hora_inicio", to_store_timestamp(start)),
            lte("data_hora_inicio", to_store_timestamp(end)),
        ]
        if not include_cancelled:
            # neq alone would also drop rows whose status is NULL
            filters.append(any_of("status.is.null", f"status.neq.{ReservationStatus.CANCELLED.value}"))

        rows = await self._call(
            self._client.select,
            RESERVATIONS,
            RESERVATION_COLUMNS,
            filters=filters,
            order="data_hora_inicio",
        )
        return parse_reservations(rows)

    async def fetch_reservation(self, reservation_id: int) -> Reservation:
        rows = await self._call(
            self._client.select,
            RESERVATIONS,
            RESERVATION_COLUMNS,
            filters=[eq("id", reservation_id)],
            limit=1,
        )
        reservation = parse_reservation(rows[0]) if rows else None
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    async def fetch_customer_reservations(self, customer_id: str) -> List[Reservation]:
        rows = await self._call(
            self._client.select,
            RESERVATIONS,
            RESERVATION_COLUMNS,
            filters=[eq("cliente_id", customer_id)],
            order="data_hora_inicio",
        )
        return parse_reservations(rows)

    async def fetch_all_reservations(self) -> List[Reservation]:
        rows = await self._call(self._client.select, RESERVATIONS, RESERVATION_COLUMNS)
        return parse_reservations(rows)

    async def insert_reservation(
        self,
        customer_id: str,
        service_id: int,
        start: DateTime,
        end: DateTime,
        status: ReservationStatus = ReservationStatus.SCHEDULED,
    ) -> Reservation:
        rows = await self._call(
            self._client.insert,
            RESERVATIONS,
            {
                "cliente_id": customer_id,
                "servico_id": service_id,
                "data_hora_inicio": to_store_timestamp(start),
                "data_hora_fim": to_store_timestamp(end),
                "status": status.value,
            },
        )
        reservation = parse_reservation(rows[0]) if rows else None
        if reservation is None:
            raise StoreError("The store did not return the created reservation")
        return reservation

    async def reschedule_reservation(
        self,
        reservation_id: int,
        customer_id: str,
        service_id: int,
        start: DateTime,
        end: DateTime,
    ) -> None:
        rows = await self._call(
            self._client.update,
            RESERVATIONS,
            {
                "servico_id": service_id,
                "data_hora_inicio": to_store_timestamp(start),
                "data_hora_fim": to_store_timestamp(end),
                "status": ReservationStatus.SCHEDULED.value,
            },
            [eq("id", reservation_id), eq("cliente_id", customer_id)],
        )
        if not rows:
            raise NotFoundError(f"Reservation {reservation_id} not found for this customer")

    async def set_reservation_status(self, reservation_id: int, status: ReservationStatus) -> None:
        rows = await self._call(
            self._client.update,
            RESERVATIONS,
            {"status": status.value},
            [eq("id", reservation_id)],
        )
        if not rows:
            raise NotFoundError(f"Reservation {reservation_id} not found")

    async def delete_reservation(self, reservation_id: int) -> None:
        rows = await self._call(self._client.delete, RESERVATIONS, [eq("id", reservation_id)])
        if not rows:
            raise NotFoundError(f"Reservation {reservation_id} not found")
