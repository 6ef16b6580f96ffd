"""
Audit log API endpoints.

Superadmins may query every record; other users only see their own activity.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud6.api.deps import get_current_user_context
from crud6.db import schemas
from crud6.db.database import get_db
from crud6.db.repositories import audits as audit_repo

router = APIRouter(prefix="/audits", tags=["audits"])


@router.get("/", response_model=List[schemas.AuditLog])
def list_audit_logs(
    user_id: Optional[uuid.UUID] = None,
    model: Optional[str] = None,
    target_id: Optional[str] = None,
    action_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context

    if not current_user.get("is_superadmin"):
        if user_id is not None and user_id != user.id:
            raise HTTPException(status_code=403, detail="Forbidden")
        user_id = user.id

    return audit_repo.get_audit_logs(
        db,
        user_id=user_id,
        model=model,
        target_id=target_id,
        action_type=action_type,
        skip=skip,
        limit=limit,
    )
