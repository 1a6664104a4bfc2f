from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from dental_saas.models.admin_audit_log import AdminAuditLog


def log_admin_action(
    db: Session,
    *,
    company_id: str,
    user_id: str,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AdminAuditLog:
    entry = AdminAuditLog(
        company_id=str(company_id),
        user_id=str(user_id),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta_json=json.dumps(meta, default=str) if meta else None,
    )
    db.add(entry)
    return entry
