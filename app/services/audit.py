# app/services/audit.py
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from app.models.audit import AuditLog

def record(
    db: Session,
    *,
    entity: str,
    entity_id: int,
    action: str,
    user_id: Optional[int] = None,
    description: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Adiciona o registro na transação corrente; quem chama faz o commit."""
    row = AuditLog(
        user_id=user_id,
        entity=entity,
        entity_id=entity_id,
        action=action,
        description=(description or "")[:255] or None,
        diff_json=details,
    )
    db.add(row)
    return row
