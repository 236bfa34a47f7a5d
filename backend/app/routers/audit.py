from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from uuid import UUID

from ..audit import JOURNAL_ENTITY
from ..db import get_conn, set_org_context
from ..deps import get_org_id

router = APIRouter(prefix="/audit", tags=["audit"])


def _parse_uuid_optional(value: Optional[str], field_name: str) -> Optional[str]:
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        return str(UUID(raw))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field_name} must be a valid UUID")


@router.get("/logs")
def list_audit_logs(
    entity_id: Optional[str] = None,
    action_prefix: Optional[str] = None,
    user_id: Optional[str] = None,
    limit: int = 200,
    offset: int = 0,
    org_id: str = Depends(get_org_id),
):
    """
    Journal audit trail for the organization, newest first.
    Ledger entry ids come from the ledger service and are opaque, so only user_id is UUID-checked.
    """
    if limit <= 0 or limit > 500:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 500")
    if offset < 0:
        raise HTTPException(status_code=400, detail="offset must be >= 0")

    entity_id = (entity_id or "").strip() or None
    action_prefix = (action_prefix or "").strip() or None
    user_id = _parse_uuid_optional(user_id, "user_id")

    with get_conn() as conn:
        set_org_context(conn, org_id)
        with conn.cursor() as cur:
            sql = """
                SELECT l.id, l.user_id, u.email AS user_email,
                       l.action, l.entity_type, l.entity_id,
                       l.details, l.created_at
                FROM audit_logs l
                LEFT JOIN users u ON u.id = l.user_id
                WHERE l.org_id = %s
                  AND l.entity_type = %s
            """
            params: list = [org_id, JOURNAL_ENTITY]

            if entity_id:
                sql += " AND l.entity_id = %s"
                params.append(entity_id)
            if user_id:
                sql += " AND l.user_id = %s::uuid"
                params.append(user_id)
            if action_prefix:
                sql += " AND l.action LIKE %s"
                params.append(action_prefix + "%")

            sql += " ORDER BY l.created_at DESC, l.id DESC LIMIT %s OFFSET %s"
            params.extend([limit, offset])
            cur.execute(sql, params)
            return {"audit_logs": cur.fetchall()}
