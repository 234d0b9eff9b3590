"""
Tests for the hosted store adapter and its row mapping.
"""

import asyncio
from datetime import time
from decimal import Decimal

import pendulum
import pytest

from barberbook.adapters.rest_client import RestClient
from barberbook.adapters.supabase_store import (
    SupabaseStore,
    parse_profile,
    parse_reservation,
    to_store_timestamp,
)
from barberbook.domain.exceptions import NotFoundError
from barberbook.domain.models import Profile, ReservationStatus, UserType

from conftest import FakeResponse

TZ = "America/Sao_Paulo"

RESERVATION_ROW = {
    "id": 6,
    "cliente_id": "u2",
    "servico_id": 3,
    "data_hora_inicio": "2026-11-03T15:00:00+00:00",
    "data_hora_fim": "2026-11-03T16:00:00+00:00",
    "status": "agendado",
    "servicos": {"id": 3, "nome": "Corte + Barba", "preco": 70.0, "duracao_minutos": 60},
    "profiles": {"nome": "Marina Souza"},
}


def _store(http) -> SupabaseStore:
    return SupabaseStore(RestClient("https://demo.supabase.co/rest/v1", "anon-key", http=http))


class TestRowMapping:

    def test_reservation_with_joins(self):
        reservation = parse_reservation(RESERVATION_ROW)

        assert reservation.id == 6
        assert reservation.status is ReservationStatus.SCHEDULED
        assert reservation.local_start(TZ).format("YYYY-MM-DD HH:mm") == "2026-11-03 12:00"
        assert reservation.service.name == "Corte + Barba"
        assert reservation.price == Decimal("70.0")
        assert reservation.customer_name == "Marina Souza"

    def test_removed_service_and_missing_status(self):
        row = dict(RESERVATION_ROW, servicos=None, status=None)

        reservation = parse_reservation(row)

        assert reservation.service is None
        assert reservation.status is None
        assert reservation.price == Decimal("0")

    def test_unknown_status_is_kept_raw(self):
        reservation = parse_reservation(dict(RESERVATION_ROW, status=" Remarcado "))

        assert reservation.status is None
        assert reservation.raw_status == "remarcado"
        assert parse_reservation(RESERVATION_ROW).raw_status is None

    def test_malformed_start_is_skipped(self, caplog):
        assert parse_reservation(dict(RESERVATION_ROW, data_hora_inicio="ontem")) is None
        assert parse_reservation(dict(RESERVATION_ROW, data_hora_inicio=None)) is None
        assert "malformed start" in caplog.text

    def test_unknown_user_type_falls_back_to_customer(self):
        profile = parse_profile({"id": "u1", "nome": "Ana", "tipo_usuario": "gerente"})
        assert profile.user_type is UserType.CUSTOMER
        assert parse_profile({"id": "u2", "nome": "Carlos", "tipo_usuario": "adm"}).is_admin

    def test_store_timestamps_are_utc(self):
        local = pendulum.datetime(2026, 11, 3, 10, 0, tz=TZ)
        assert to_store_timestamp(local) == "2026-11-03T13:00:00Z"


class TestSupabaseStore:

    def test_reservations_between_excludes_cancelled_but_keeps_null(self, fake_http):
        http = fake_http(FakeResponse(200, [RESERVATION_ROW, dict(RESERVATION_ROW, id=7, data_hora_inicio="x")]))
        start = pendulum.datetime(2026, 11, 3, tz=TZ)

        reservations = asyncio.run(
            _store(http).fetch_reservations_between(start, start.end_of("day"))
        )

        assert [r.id for r in reservations] == [6]
        params = http.calls[0]["params"]
        assert ("data_hora_inicio", "gte.2026-11-03T03:00:00Z") in params
        assert ("or", "(status.is.null,status.neq.cancelado)") in params
        assert ("order", "data_hora_inicio.asc") in params

    def test_reservations_between_including_cancelled(self, fake_http):
        http = fake_http(FakeResponse(200, []))
        start = pendulum.datetime(2026, 11, 3, tz=TZ)

        asyncio.run(_store(http).fetch_reservations_between(start, start.end_of("day"), include_cancelled=True))

        assert all(name != "or" for name, _ in http.calls[0]["params"])

    def test_template_times(self, fake_http):
        http = fake_http(FakeResponse(200, [{"horario": "09:00:00"}, {"horario": "09:30:00"}, {"horario": "bad"}]))

        times = asyncio.run(_store(http).fetch_template_times(2))

        assert times == [time(9, 0), time(9, 30)]
        assert ("dia_da_semana", "eq.2") in http.calls[0]["params"]

    def test_replace_template_is_one_rpc(self, fake_http):
        http = fake_http(FakeResponse(200, 2))

        written = asyncio.run(_store(http).replace_template(1, [time(9, 0), time(9, 30)]))

        assert written == 2
        assert len(http.calls) == 1
        call = http.calls[0]
        assert call["url"].endswith("/rpc/replace_horarios_disponiveis")
        assert call["json"] == {"p_dia_da_semana": 1, "p_horarios": ["09:00:00", "09:30:00"]}

    def test_profile_missing_is_none(self, fake_http):
        http = fake_http(FakeResponse(200, []))

        assert asyncio.run(_store(http).fetch_profile("u9")) is None

    def test_insert_profile(self, fake_http):
        http = fake_http(FakeResponse(201, [{}]))

        asyncio.run(_store(http).insert_profile(Profile(id="u1", name="Ana")))

        assert http.calls[0]["json"] == {"id": "u1", "nome": "Ana", "tipo_usuario": "cliente"}

    def test_insert_reservation(self, fake_http):
        http = fake_http(FakeResponse(201, [dict(RESERVATION_ROW, servicos=None, profiles=None)]))
        start = pendulum.datetime(2026, 11, 3, 12, 0, tz=TZ)

        reservation = asyncio.run(
            _store(http).insert_reservation("u2", 3, start, start.add(minutes=60))
        )

        assert reservation.id == 6
        assert http.calls[0]["json"] == {
            "cliente_id": "u2",
            "servico_id": 3,
            "data_hora_inicio": "2026-11-03T15:00:00Z",
            "data_hora_fim": "2026-11-03T16:00:00Z",
            "status": "agendado",
        }

    def test_reschedule_is_scoped_to_owner(self, fake_http):
        http = fake_http(FakeResponse(200, [{"id": 6}]))
        start = pendulum.datetime(2026, 11, 4, 9, 0, tz=TZ)

        asyncio.run(_store(http).reschedule_reservation(6, "u2", 1, start, start.add(minutes=30)))

        call = http.calls[0]
        assert call["method"] == "PATCH"
        assert call["params"] == [("id", "eq.6"), ("cliente_id", "eq.u2")]
        assert call["json"]["status"] == "agendado"

    def test_missing_rows_raise_not_found(self, fake_http):
        store = _store(fake_http(FakeResponse(200, []), FakeResponse(200, []), FakeResponse(200, [])))

        with pytest.raises(NotFoundError):
            asyncio.run(store.fetch_reservation(99))
        with pytest.raises(NotFoundError):
            asyncio.run(store.set_reservation_status(99, ReservationStatus.COMPLETED))
        with pytest.raises(NotFoundError):
            asyncio.run(store.delete_reservation(99))
