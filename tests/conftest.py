"""
Shared test doubles for the HTTP adapters.
"""

import json
from typing import Any, Dict, List, Optional

import pytest


class FakeResponse:
    """Just enough of requests.Response for the adapters."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode("utf-8")

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeHttp:
    """Records requests and replays queued responses (or raises queued exceptions)."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0) if self.responses else FakeResponse(200, [])
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_http():
    """Factory: fake_http(FakeResponse(...), ...) -> FakeHttp."""
    def factory(*responses) -> FakeHttp:
        return FakeHttp(list(responses))
    return factory
