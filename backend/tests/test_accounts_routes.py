import pytest
from fastapi import HTTPException

from backend.app.oa_client import OAError
from backend.app.routers import accounts as accounts_router


def test_list_unwraps_ledger_envelope(monkeypatch):
    monkeypatch.setattr(
        accounts_router,
        "list_accounts",
        lambda org_id, request_id=None: {"data": [{"id": "1010", "name": "Cash"}]},
    )
    out = accounts_router.list_chart_of_accounts(org_id="org-1", request_id="rid-1")
    assert out == {"accounts": [{"id": "1010", "name": "Cash"}]}


def test_list_accepts_bare_list(monkeypatch):
    monkeypatch.setattr(accounts_router, "list_accounts", lambda org_id, request_id=None: [{"id": "4000"}])
    assert accounts_router.list_chart_of_accounts(org_id="org-1", request_id="") == {"accounts": [{"id": "4000"}]}


def test_get_maps_missing_account_to_404(monkeypatch):
    def _missing(*_args, **_kwargs):
        raise OAError(404, "nope")

    monkeypatch.setattr(accounts_router, "get_account", _missing)
    with pytest.raises(HTTPException) as exc_info:
        accounts_router.get_chart_account("9999", org_id="org-1", request_id="rid-1")
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "account not found"
