from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..audit import record_audit
from ..config import settings
from ..db import get_conn, set_org_context
from ..deps import get_org_id, get_current_user, get_request_id
from ..journal_validation import (
    JournalLine,
    ValidationErrorKind,
    ValidationResult,
    validate_journal_entry,
    validate_transaction_type,
)
from ..logs import json_log
from ..oa_client import (
    OAError,
    create_transaction,
    delete_transaction,
    find_transaction_by_reference,
    get_transaction,
    list_transactions,
    update_transaction,
)
from ..validation import AccountId, Amount, TransactionType


router = APIRouter(prefix="/journal", tags=["journal"])


class JournalLineIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[AccountId] = Field(default=None, alias="accountId")
    debit: Optional[Amount] = None
    credit: Optional[Amount] = None
    description: Optional[str] = None


class JournalEntryIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    journal_date: date = Field(alias="date")
    description: str = Field(min_length=1)
    reference: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")
    transaction_type: Optional[TransactionType] = Field(default=None, alias="transactionType")
    lines: List[JournalLineIn]


class JournalEntryUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    journal_date: Optional[date] = Field(default=None, alias="date")
    description: Optional[str] = None
    reference: Optional[str] = None
    transaction_type: Optional[TransactionType] = Field(default=None, alias="transactionType")
    lines: Optional[List[JournalLineIn]] = None


class JournalValidateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_type: Optional[TransactionType] = Field(default=None, alias="transactionType")
    strict: Optional[bool] = None
    lines: List[JournalLineIn]


def _to_lines(lines: List[JournalLineIn]) -> List[JournalLine]:
    return [
        JournalLine(account_id=l.account_id, debit=l.debit, credit=l.credit, description=l.description)
        for l in lines
    ]


def _check_lines(lines: List[JournalLineIn], transaction_type: Optional[str], strict: Optional[bool] = None) -> ValidationResult:
    strict = settings.journal_strict_lines if strict is None else strict
    parsed = _to_lines(lines)
    if transaction_type:
        return validate_transaction_type(parsed, transaction_type, strict=strict)
    return validate_journal_entry(parsed, strict=strict)


def _result_body(result: ValidationResult) -> dict:
    body = result.model_dump(mode="json")
    body["is_valid"] = result.is_valid
    return body


def _rejection(result: ValidationResult, org_id: str, request_id: str) -> JSONResponse:
    shape_kinds = {ValidationErrorKind.MISSING_DEBIT_SIDE, ValidationErrorKind.MISSING_CREDIT_SIDE}
    prefix = "journal entry is invalid" if result.error_kind in shape_kinds else "journal entry is not balanced"
    json_log(
        "info",
        "journal.rejected",
        org_id=org_id,
        request_id=request_id,
        error_kind=result.error_kind,
        total_debits=result.total_debits,
        total_credits=result.total_credits,
    )
    return JSONResponse(
        status_code=400,
        content={
            "detail": f"{prefix}: {result.error}",
            "error_kind": result.error_kind.value if result.error_kind else None,
            "total_debits": str(result.total_debits),
            "total_credits": str(result.total_credits),
        },
    )


def _wire_amount(v: Optional[Decimal]):
    return float(v) if v is not None else None


def _wire_lines(lines: List[JournalLineIn], org_id: str) -> list:
    out = []
    for l in lines:
        row = {
            "accountId": l.account_id,
            "debit": _wire_amount(l.debit),
            "credit": _wire_amount(l.credit),
            "organizationId": org_id,
        }
        if l.description:
            row["description"] = l.description.strip()
        out.append(row)
    return out


@router.get("")
def list_journal_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    org_id: str = Depends(get_org_id),
    request_id: str = Depends(get_request_id),
):
    return list_transactions(
        org_id,
        page=page,
        limit=limit,
        start_date=start_date.isoformat() if start_date else None,
        end_date=end_date.isoformat() if end_date else None,
        request_id=request_id,
    )


@router.post("/validate")
def validate_journal(data: JournalValidateIn):
    """Dry run: report balance and shape without touching the ledger."""
    return _result_body(_check_lines(data.lines, data.transaction_type, data.strict))


@router.get("/{entry_id}")
def get_journal_entry(
    entry_id: str,
    org_id: str = Depends(get_org_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return get_transaction(org_id, entry_id, request_id=request_id)
    except OAError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="journal entry not found")
        raise


@router.post("", status_code=201)
def create_journal_entry(
    data: JournalEntryIn,
    org_id: str = Depends(get_org_id),
    user=Depends(get_current_user),
    request_id: str = Depends(get_request_id),
):
    result = _check_lines(data.lines, data.transaction_type)
    if not result.is_valid:
        return _rejection(result, org_id, request_id)

    idempotency_key = (data.idempotency_key or "").strip() or None
    reference = (data.reference or "").strip() or None
    # Replay is looked up by reference, so the key has to be the stored reference.
    if idempotency_key and reference and reference != idempotency_key:
        raise HTTPException(status_code=400, detail="reference and idempotencyKey must match when both are given")
    if idempotency_key:
        existing = find_transaction_by_reference(org_id, idempotency_key, request_id=request_id)
        if existing:
            json_log("info", "journal.idempotent_replay", org_id=org_id, request_id=request_id, entry_id=existing.get("id"))
            return JSONResponse(status_code=200, content=jsonable_encoder(existing))

    payload = {
        "date": data.journal_date.isoformat(),
        "description": data.description.strip(),
        "reference": reference or idempotency_key,
        "lines": _wire_lines(data.lines, org_id),
        "organizationId": org_id,
    }
    entry = create_transaction(org_id, payload, request_id=request_id) or {}
    entry_id = entry.get("id")

    with get_conn() as conn:
        set_org_context(conn, org_id)
        with conn.cursor() as cur:
            record_audit(
                cur,
                org_id,
                user["user_id"],
                "journal.create",
                entry_id,
                {
                    "description": payload["description"],
                    "transaction_type": data.transaction_type,
                    "line_count": len(data.lines),
                    "total_debits": result.total_debits,
                    "total_credits": result.total_credits,
                    "request_id": request_id,
                },
            )

    json_log(
        "info",
        "journal.created",
        org_id=org_id,
        request_id=request_id,
        entry_id=entry_id,
        total_debits=result.total_debits,
        total_credits=result.total_credits,
    )
    return entry


@router.put("/{entry_id}")
def update_journal_entry(
    entry_id: str,
    data: JournalEntryUpdateIn,
    org_id: str = Depends(get_org_id),
    user=Depends(get_current_user),
    request_id: str = Depends(get_request_id),
):
    if data.journal_date is None and not data.description and data.reference is None and data.lines is None:
        raise HTTPException(status_code=400, detail="at least one field to update is required")

    payload: dict = {}
    if data.lines is not None:
        result = _check_lines(data.lines, data.transaction_type)
        if not result.is_valid:
            return _rejection(result, org_id, request_id)
        payload["lines"] = _wire_lines(data.lines, org_id)
    if data.journal_date is not None:
        payload["date"] = data.journal_date.isoformat()
    if data.description:
        payload["description"] = data.description.strip()
    if data.reference is not None:
        payload["reference"] = data.reference.strip()

    try:
        entry = update_transaction(org_id, entry_id, payload, request_id=request_id)
    except OAError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="journal entry not found")
        raise

    with get_conn() as conn:
        set_org_context(conn, org_id)
        with conn.cursor() as cur:
            record_audit(
                cur,
                org_id,
                user["user_id"],
                "journal.update",
                entry_id,
                {"fields": sorted(payload.keys()), "request_id": request_id},
            )

    json_log("info", "journal.updated", org_id=org_id, request_id=request_id, entry_id=entry_id, fields=sorted(payload.keys()))
    return entry


@router.delete("/{entry_id}")
def delete_journal_entry(
    entry_id: str,
    org_id: str = Depends(get_org_id),
    user=Depends(get_current_user),
    request_id: str = Depends(get_request_id),
):
    try:
        delete_transaction(org_id, entry_id, request_id=request_id)
    except OAError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="journal entry not found")
        raise

    with get_conn() as conn:
        set_org_context(conn, org_id)
        with conn.cursor() as cur:
            record_audit(cur, org_id, user["user_id"], "journal.delete", entry_id, {"request_id": request_id})

    json_log("info", "journal.deleted", org_id=org_id, request_id=request_id, entry_id=entry_id)
    return {"message": "journal entry deleted"}
