"""
Audit logging helpers and enums.

Persists one activity record per successful write so every change made
through the CRUD endpoints is traceable to the acting user.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from crud6.db import schemas
from crud6.db.repositories import audits as audit_repo

logger = logging.getLogger("crud6.audit")


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    UPDATE_FIELD = "update_field"
    DELETE = "delete"
    ATTACH = "attach"
    DETACH = "detach"
    CUSTOM_ACTION = "action"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def action_type_for(model: str, action: AuditAction | str) -> str:
    """Return the activity type string, e.g. ``crud6_products_create``."""
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    return f"crud6_{model}_{action_value}"


def log(
    db: Session,
    *,
    model: str,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_id: Any = None,
    actor_user_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """Central audit logging helper."""
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_type_for(model, action),
        status=status_value,
        model=model,
        target_id=None if target_id is None else str(target_id),
        metadata=metadata or {},
    )
    logger.info(
        "audit: action=%s target=%s actor=%s status=%s",
        audit_log.action_type,
        audit_log.target_id,
        actor_user_id,
        status_value,
    )
    return audit_repo.create_audit_log(db, audit_log=audit_log, actor_user_id=actor_user_id)


__all__ = ["AuditAction", "AuditStatus", "action_type_for", "log"]
