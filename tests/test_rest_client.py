"""
Tests for the REST query client.
"""

import pytest
import requests

from barberbook.adapters.rest_client import RestClient, any_of, eq, gte
from barberbook.domain.exceptions import StoreError

from conftest import FakeResponse

BASE_URL = "https://demo.supabase.co/rest/v1"


def _client(http, token=None) -> RestClient:
    return RestClient(BASE_URL, "anon-key", timeout=5, token_provider=lambda: token, http=http)


class TestRestClient:

    def test_select_builds_query(self, fake_http):
        http = fake_http(FakeResponse(200, [{"id": 1}]))
        client = _client(http, token="user-token")

        rows = client.select(
            "agendamentos",
            "id,\n   status",
            filters=[eq("cliente_id", "u1"), any_of("status.is.null", "status.neq.cancelado")],
            order="data_hora_inicio",
            limit=10,
        )

        assert rows == [{"id": 1}]
        call = http.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == f"{BASE_URL}/agendamentos"
        assert call["params"] == [
            ("select", "id,status"),
            ("cliente_id", "eq.u1"),
            ("or", "(status.is.null,status.neq.cancelado)"),
            ("order", "data_hora_inicio.asc"),
            ("limit", "10"),
        ]
        assert call["headers"]["Authorization"] == "Bearer user-token"
        assert call["headers"]["apikey"] == "anon-key"
        assert call["timeout"] == 5

    def test_anonymous_requests_use_api_key(self, fake_http):
        http = fake_http(FakeResponse(200, []))

        _client(http).select("servicos", order="id", ascending=False)

        call = http.calls[0]
        assert call["headers"]["Authorization"] == "Bearer anon-key"
        assert ("order", "id.desc") in call["params"]

    def test_insert_asks_for_representation(self, fake_http):
        http = fake_http(FakeResponse(201, [{"id": 7}]))

        rows = _client(http).insert("agendamentos", {"status": "agendado"})

        assert rows == [{"id": 7}]
        assert http.calls[0]["method"] == "POST"
        assert http.calls[0]["json"] == {"status": "agendado"}
        assert http.calls[0]["headers"]["Prefer"] == "return=representation"

    def test_unfiltered_update_and_delete_are_refused(self, fake_http):
        http = fake_http()
        client = _client(http)

        with pytest.raises(StoreError):
            client.update("agendamentos", {"status": "cancelado"}, [])
        with pytest.raises(StoreError):
            client.delete("agendamentos", [])
        assert http.calls == []

    def test_delete_with_filter(self, fake_http):
        http = fake_http(FakeResponse(200, [{"id": 3}]))

        _client(http).delete("agendamentos", [eq("id", 3)])

        assert http.calls[0]["method"] == "DELETE"
        assert http.calls[0]["params"] == [("id", "eq.3")]

    def test_rpc(self, fake_http):
        http = fake_http(FakeResponse(200, 4))

        result = _client(http).rpc("replace_horarios_disponiveis", {"p_dia_da_semana": 1})

        assert result == 4
        assert http.calls[0]["url"] == f"{BASE_URL}/rpc/replace_horarios_disponiveis"

    def test_http_error_carries_message(self, fake_http):
        http = fake_http(FakeResponse(401, {"message": "JWT expired"}))

        with pytest.raises(StoreError, match=r"JWT expired \(HTTP 401\)"):
            _client(http).select("profiles", filters=[gte("id", 0)])

    def test_http_error_without_body(self, fake_http):
        http = fake_http(FakeResponse(503))

        with pytest.raises(StoreError, match="HTTP 503"):
            _client(http).select("profiles")

    def test_network_error(self, fake_http):
        http = fake_http(requests.exceptions.ConnectionError("offline"))

        with pytest.raises(StoreError, match="Could not reach the store"):
            _client(http).select("profiles")

    def test_no_content(self, fake_http):
        http = fake_http(FakeResponse(204))

        assert _client(http).update("profiles", {"nome": "Ana"}, [eq("id", "u1")]) == []

    def test_select_strips_whitespace_around_embeds(self, fake_http):
        http = fake_http(FakeResponse(200, []))

        _client(http).select("agendamentos", "id,\n    servicos ( id, nome ),\n    profiles ( nome )")

        assert http.calls[0]["params"][0] == ("select", "id,servicos(id,nome),profiles(nome)")
