import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional
from urllib.parse import quote

from .config import settings
from .logs import json_log


class OAError(RuntimeError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"OA HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _error_detail(raw: str) -> str:
    try:
        body = json.loads(raw)
    except ValueError:
        return raw.strip() or "error"
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str) and body[key].strip():
                return body[key].strip()
    return raw.strip() or "error"


def _url(org_id: str, path: str, params: Optional[dict[str, Any]] = None) -> str:
    url = f"{settings.oa_base_url}/organizations/{quote(str(org_id), safe='')}{path}"
    clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
    if clean:
        url += "?" + urllib.parse.urlencode(clean, doseq=True)
    return url


def oa_request(
    method: str,
    path: str,
    org_id: str,
    *,
    body: Any = None,
    params: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Any:
    url = _url(org_id, path, params)
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Accept-Version": settings.oa_accept_version,
        "X-Organization-ID": str(org_id),
        "X-Request-ID": request_id or "unknown",
    }
    if settings.oa_api_key:
        headers["Authorization"] = f"Bearer {settings.oa_api_key}"
    data = json.dumps(body, default=str).encode("utf-8") if body is not None else None
    req = urllib.request.Request(url, data=data, headers=headers, method=method)
    try:
        with urllib.request.urlopen(req, timeout=settings.oa_timeout_seconds) as resp:
            raw = resp.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        raw_err = e.read().decode("utf-8", errors="replace") if hasattr(e, "read") else str(e)
        json_log("warning", "oa.request.failed", method=method, path=path, status_code=e.code, request_id=request_id)
        raise OAError(e.code, _error_detail(raw_err)) from e
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        json_log("error", "oa.request.failed", method=method, path=path, request_id=request_id, error=str(e))
        raise OAError(502, f"ledger service unreachable: {e}") from e

    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise OAError(502, "ledger service returned invalid JSON") from e


def list_transactions(
    org_id: str,
    *,
    page: int = 1,
    limit: int = 50,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    request_id: Optional[str] = None,
):
    params = {"page": page, "limit": limit, "startDate": start_date, "endDate": end_date}
    return oa_request("GET", "/transactions", org_id, params=params, request_id=request_id)


def get_transaction(org_id: str, transaction_id: str, *, request_id: Optional[str] = None):
    return oa_request("GET", f"/transactions/{quote(transaction_id, safe='')}", org_id, request_id=request_id)


def find_transaction_by_reference(org_id: str, reference: str, *, request_id: Optional[str] = None):
    rows = oa_request("GET", "/transactions", org_id, params={"reference": reference}, request_id=request_id)
    if isinstance(rows, dict):
        rows = rows.get("transactions") or rows.get("data") or []
    for row in rows or []:
        if isinstance(row, dict) and row.get("reference") == reference:
            return row
    return None


def create_transaction(org_id: str, payload: dict[str, Any], *, request_id: Optional[str] = None):
    return oa_request("POST", "/transactions", org_id, body=payload, request_id=request_id)


def update_transaction(org_id: str, transaction_id: str, payload: dict[str, Any], *, request_id: Optional[str] = None):
    return oa_request("PUT", f"/transactions/{quote(transaction_id, safe='')}", org_id, body=payload, request_id=request_id)


def delete_transaction(org_id: str, transaction_id: str, *, request_id: Optional[str] = None) -> None:
    oa_request("DELETE", f"/transactions/{quote(transaction_id, safe='')}", org_id, request_id=request_id)


def list_accounts(org_id: str, *, request_id: Optional[str] = None):
    return oa_request("GET", "/accounts", org_id, request_id=request_id)


def get_account(org_id: str, account_id: str, *, request_id: Optional[str] = None):
    return oa_request("GET", f"/accounts/{quote(account_id, safe='')}", org_id, request_id=request_id)
