"""
Generic query client for the hosted store's REST (PostgREST) interface.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from ..domain.exceptions import StoreError

logger = logging.getLogger(__name__)

# (column, "op.value") pairs as PostgREST expects them in the query string
Filter = Tuple[str, str]


def eq(column: str, value: Any) -> Filter:
    return column, f"eq.{value}"


def neq(column: str, value: Any) -> Filter:
    return column, f"neq.{value}"


def gte(column: str, value: Any) -> Filter:
    return column, f"gte.{value}"


def lte(column: str, value: Any) -> Filter:
    return column, f"lte.{value}"


def any_of(*conditions: str) -> Filter:
    """OR-combine raw conditions, e.g. ``any_of("status.is.null", "status.neq.cancelado")``."""
    return "or", f"({','.join(conditions)})"


class RestClient:
    """
    Thin wrapper around the PostgREST endpoints of the hosted store.

    Every call is blocking; the async store adapter moves calls to a worker thread.
    """

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        timeout: float = 15.0,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        http: Optional[requests.Session] = None
    ):
        """
        Initialize the REST client.

        Args:
            rest_url: Base URL, e.g. https://<project>.supabase.co/rest/v1
            api_key: Public (anon) API key
            timeout: Request timeout in seconds
            token_provider: Returns the signed-in user's access token, if any
            http: Optional requests session (injected in tests)
        """
        self.rest_url = rest_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._token_provider = token_provider
        self._http = http or requests.Session()

    @property
    def headers(self) -> Dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
            "Content-Type": "application/json",
        }

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        # PostgREST select grammar takes no whitespace
        params: List[Filter] = [("select", "".join(columns.split()))]
        params.extend(filters)
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))

        return self._request("GET", table, params=params)

    def insert(self, table: str, rows: Dict[str, Any] | List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._request("POST", table, json=rows, prefer="return=representation")

    def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        if not filters:
            raise StoreError(f"Refusing to update every row of '{table}' without a filter")
        return self._request(
            "PATCH", table, params=list(filters), json=values, prefer="return=representation"
        )

    def delete(self, table: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        if not filters:
            raise StoreError(f"Refusing to delete every row of '{table}' without a filter")
        return self._request("DELETE", table, params=list(filters), prefer="return=representation")

    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """Call a server-side function."""
        return self._request("POST", f"rpc/{function}", json=params)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[List[Filter]] = None,
        json: Any = None,
        prefer: Optional[str] = None
    ) -> Any:
        url = f"{self.rest_url}/{path}"
        headers = self.headers
        if prefer:
            headers["Prefer"] = prefer

        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as exc:
            raise StoreError(f"Could not reach the store ({method} {path}): {exc}") from exc

        if response.status_code >= 400:
            raise StoreError(f"{method} {path} failed: {self._error_message(response)}")

        if response.status_code == 204 or not response.content:
            return []

        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"{method} {path} returned an invalid JSON body") from exc

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"

        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error_description") or payload.get("error")
            if message:
                return f"{message} (HTTP {response.status_code})"
        return f"HTTP {response.status_code}"
