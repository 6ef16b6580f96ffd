"""Custom schema actions: ``POST /api/crud6/{model}/{id}/a/{action_key}``."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud6 import audit, locale
from crud6.api.deps import CRUDContext, get_crud_context, get_current_user_context
from crud6.api.permissions import permission_slug, require_slug
from crud6.db import schemas
from crud6.db.database import get_db
from crud6.db.repositories import records as record_repo
from crud6.schema.actions import find_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crud6", tags=["crud6"])

PASSWORD_RESET_TYPES = ("password_reset", "reset_password")


def _field_update(ctx: CRUDContext, record: Dict[str, Any], id: str, action: Dict[str, Any]) -> Dict[str, Any]:
    field = action.get("field")
    if not field or field not in ctx.schema["fields"]:
        raise HTTPException(status_code=400, detail=f"Action '{action.get('key')}' has no valid field")
    if action.get("toggle"):
        value = not bool(record.get(field))
    elif "value" in action:
        value = action["value"]
    else:
        raise HTTPException(status_code=400, detail=f"Action '{action.get('key')}' has no value")
    return record_repo.update_field(ctx.db, ctx.schema, id, field, value)


@router.post("/{model}/{id}/a/{action_key}", response_model=schemas.MessageResponse)
def run_action(
    id: str,
    action_key: str,
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    action = find_action(ctx.schema, action_key)
    if action is None:
        raise HTTPException(status_code=404, detail=f"Action '{action_key}' not found on model '{ctx.model}'")
    require_slug(current_user, action.get("permission") or permission_slug(ctx.schema, "update"))

    record = record_repo.find_record(ctx.db, ctx.schema, id)
    action_type = action.get("type")
    if action_type == "field_update":
        data = _field_update(ctx, record, id, action)
    elif action_type in PASSWORD_RESET_TYPES:
        data = {"reset_initiated": True}
    else:
        logger.warning("action_not_executable: model=%s key=%s type=%s", ctx.model, action_key, action_type)
        data = {}

    audit.log(
        db,
        model=ctx.model,
        action=audit.AuditAction.CUSTOM_ACTION,
        target_id=id,
        actor_user_id=user.id,
        metadata={"action": action_key, "type": action_type},
    )
    message = locale.translate(action.get("success_message") or "CRUD6.ACTION.SUCCESS")
    return {
        "title": locale.translate("CRUD6.ACTION.SUCCESS_TITLE"),
        "description": locale.interpolate(message, record),
        "data": data,
    }
