import json
from typing import Any, Optional

JOURNAL_ENTITY = "journal_entry"


def record_audit(cur, org_id: str, user_id: str, action: str, entity_id: Optional[str], details: dict[str, Any]) -> None:
    cur.execute(
        """
        INSERT INTO audit_logs (id, org_id, user_id, action, entity_type, entity_id, details)
        VALUES (gen_random_uuid(), %s, %s, %s, %s, %s, %s::jsonb)
        """,
        (
            org_id,
            user_id,
            action,
            JOURNAL_ENTITY,
            entity_id,
            json.dumps(details, default=str),
        ),
    )
