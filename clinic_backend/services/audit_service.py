"""
Audit logging service
"""
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from clinic_backend.models.audit_log import AuditLog
from clinic_backend.utils.datetime_utils import now_utc
from clinic_backend.utils.json_serializer import sanitize_for_json


def log_audit(
    db: Session,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Create an audit log entry

    Args:
        db: Database session
        actor_id: ID of the user performing the action (None for anonymous flows)
        action: Action type (e.g., "AUTH_LOGIN_SUCCESS", "INVITATION_CREATE", "USER_DEACTIVATE")
        entity_type: Type of entity (e.g., "auth", "user", "invitation")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)
        commit: Commit immediately. Pass False to make the entry part of the caller's transaction.

    Returns:
        Created AuditLog instance
    """
    safe_meta = sanitize_for_json(meta) if meta is not None else None

    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=safe_meta,
        created_at=now_utc()
    )
    db.add(audit_log)
    if commit:
        db.commit()
        db.refresh(audit_log)
    else:
        db.flush()
    return audit_log
