from fastapi import Header, HTTPException, Depends, Request
from .db import get_conn, set_org_context
from .security import hash_session_token
from datetime import datetime, timezone
from typing import Optional


def _extract_bearer_token(authorization: Optional[str]) -> str:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    raise HTTPException(status_code=401, detail="missing token")


def get_session(authorization: Optional[str] = Header(None)):
    token = _extract_bearer_token(authorization)
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT s.id AS session_id, s.user_id, u.email, s.expires_at, s.is_active, s.active_org_id
                FROM auth_sessions s
                JOIN users u ON u.id = s.user_id
                WHERE s.token_hash = %s
                """,
                (hash_session_token(token),),
            )
            row = cur.fetchone()
            now = datetime.now(timezone.utc)
            if not row or not row["is_active"] or row["expires_at"] < now:
                raise HTTPException(status_code=401, detail="invalid token")
            return {
                "session_id": row["session_id"],
                "user_id": row["user_id"],
                "email": row["email"],
                "active_org_id": row["active_org_id"],
            }


def get_current_user(session=Depends(get_session)):
    return {"user_id": session["user_id"], "email": session["email"]}


def get_org_id(
    x_org_id: Optional[str] = Header(None, alias="X-Org-Id"),
    session=Depends(get_session),
) -> str:
    if x_org_id and x_org_id.strip():
        return x_org_id.strip()
    if session.get("active_org_id"):
        return str(session["active_org_id"])
    raise HTTPException(status_code=400, detail="missing organization id")


def require_org_access(org_id: str = Depends(get_org_id), user=Depends(get_current_user)):
    with get_conn() as conn:
        set_org_context(conn, org_id)
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT 1 FROM user_organizations
                WHERE user_id = %s AND org_id = %s
                """,
                (user["user_id"], org_id),
            )
            if not cur.fetchone():
                raise HTTPException(status_code=403, detail="no organization access")
    return True


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or request.headers.get("x-request-id") or ""
