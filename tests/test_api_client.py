"""
Tests for the Streamlit UI's HTTP helper (requests is stubbed out).
"""

import pytest
import requests

from bizhub_ui import api_client


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def fake_request(method, url, **kwargs):
        recorded.append((method, url, kwargs))
        return FakeResponse(200, {"ok": True})

    monkeypatch.setattr(api_client.requests, "request", fake_request)
    return recorded


class TestApiRequest:
    def test_sends_bearer_token_and_timeout(self, calls):
        api_client.api_request("get", "/api/sales", token="abc", params={"project_id": 1}, base="http://api/")
        method, url, kwargs = calls[0]
        assert method == "GET"
        assert url == "http://api/api/sales"
        assert kwargs["headers"] == {"Authorization": "Bearer abc"}
        assert kwargs["params"] == {"project_id": 1}
        assert kwargs["timeout"] == 10

    def test_unsupported_method(self, calls):
        with pytest.raises(ValueError):
            api_client.api_request("PATCH", "/x")

    def test_connection_error_returns_none(self, monkeypatch):
        def boom(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(api_client.requests, "request", boom)
        assert api_client.api_request("GET", "/health") is None
        assert api_client.get_json("/health", None, default={}) == {}


class TestHelpers:
    def test_get_json(self, calls):
        assert api_client.get_json("/api/me", "t") == {"ok": True}

    def test_error_message(self):
        assert api_client.error_message(None) == "Backend unreachable"
        assert api_client.error_message(FakeResponse(400, {"error": "bad"})) == "bad"
        assert api_client.error_message(FakeResponse(500), "Oops") == "Oops (500)"

    def test_safe_json(self):
        assert api_client.safe_json(FakeResponse(200)) is None
