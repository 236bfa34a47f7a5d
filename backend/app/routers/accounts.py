from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_org_id, get_request_id
from ..oa_client import OAError, get_account, list_accounts

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("")
def list_chart_of_accounts(org_id: str = Depends(get_org_id), request_id: str = Depends(get_request_id)):
    accounts = list_accounts(org_id, request_id=request_id)
    if isinstance(accounts, dict):
        accounts = accounts.get("accounts") or accounts.get("data") or []
    return {"accounts": accounts or []}


@router.get("/{account_id}")
def get_chart_account(account_id: str, org_id: str = Depends(get_org_id), request_id: str = Depends(get_request_id)):
    try:
        return get_account(org_id, account_id, request_id=request_id)
    except OAError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="account not found")
        raise
