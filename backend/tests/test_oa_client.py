import io
import json
import urllib.error

import pytest

from backend.app import oa_client
from backend.app.oa_client import OAError


class _FakeResponse:
    def __init__(self, body: bytes):
        self._body = body

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def ledger(monkeypatch):
    monkeypatch.setattr(oa_client.settings, "oa_base_url", "http://oa.test")
    monkeypatch.setattr(oa_client.settings, "oa_api_key", "secret")
    monkeypatch.setattr(oa_client.settings, "oa_accept_version", "1.4.0")
    calls = []
    state = {"body": b"{}", "error": None}

    def _fake_urlopen(req, timeout=None):
        calls.append({"req": req, "timeout": timeout})
        if state["error"] is not None:
            raise state["error"]
        return _FakeResponse(state["body"])

    monkeypatch.setattr(oa_client.urllib.request, "urlopen", _fake_urlopen)
    return calls, state


def test_request_builds_org_scoped_url_and_headers(ledger):
    calls, state = ledger
    state["body"] = json.dumps({"id": "tx-1"}).encode("utf-8")

    out = oa_client.create_transaction("org 1", {"description": "x"}, request_id="rid-7")

    assert out == {"id": "tx-1"}
    req = calls[0]["req"]
    assert req.full_url == "http://oa.test/organizations/org%201/transactions"
    assert req.get_method() == "POST"
    assert json.loads(req.data.decode("utf-8")) == {"description": "x"}
    headers = {k.lower(): v for k, v in req.header_items()}
    assert headers["authorization"] == "Bearer secret"
    assert headers["accept-version"] == "1.4.0"
    assert headers["x-organization-id"] == "org 1"
    assert headers["x-request-id"] == "rid-7"


def test_list_transactions_drops_empty_params(ledger):
    calls, state = ledger
    state["body"] = b"[]"

    out = oa_client.list_transactions("org-1", page=2, limit=10, start_date="2026-01-01")

    assert out == []
    assert calls[0]["req"].full_url == "http://oa.test/organizations/org-1/transactions?page=2&limit=10&startDate=2026-01-01"


def test_no_authorization_header_without_api_key(ledger, monkeypatch):
    calls, _ = ledger
    monkeypatch.setattr(oa_client.settings, "oa_api_key", "")
    oa_client.list_accounts("org-1")
    headers = {k.lower() for k, _ in calls[0]["req"].header_items()}
    assert "authorization" not in headers


def test_empty_body_decodes_to_none(ledger):
    _, state = ledger
    state["body"] = b""
    assert oa_client.delete_transaction("org-1", "tx-1") is None


def test_http_error_raises_oa_error_with_detail(ledger):
    _, state = ledger
    state["error"] = urllib.error.HTTPError(
        "http://oa.test", 404, "Not Found", {}, io.BytesIO(b'{"error": "transaction not found"}')
    )
    with pytest.raises(OAError) as exc_info:
        oa_client.get_transaction("org-1", "tx-404")
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "transaction not found"


def test_network_error_maps_to_bad_gateway(ledger):
    _, state = ledger
    state["error"] = urllib.error.URLError("connection refused")
    with pytest.raises(OAError) as exc_info:
        oa_client.list_accounts("org-1")
    assert exc_info.value.status_code == 502


def test_find_by_reference_matches_exact_reference(ledger):
    calls, state = ledger
    state["body"] = json.dumps([{"id": "a", "reference": "k-10"}, {"id": "b", "reference": "k-1"}]).encode("utf-8")

    row = oa_client.find_transaction_by_reference("org-1", "k-1")

    assert row == {"id": "b", "reference": "k-1"}
    assert calls[0]["req"].full_url.endswith("/transactions?reference=k-1")


def test_find_by_reference_returns_none_when_absent(ledger):
    _, state = ledger
    state["body"] = json.dumps({"transactions": []}).encode("utf-8")
    assert oa_client.find_transaction_by_reference("org-1", "k-1") is None
