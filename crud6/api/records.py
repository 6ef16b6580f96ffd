"""
Record endpoints: list, create, read, update, update a single field, delete.

Every route resolves the model from the path (``products`` or
``products@analytics``), checks the schema permission for the operation and
writes an audit record for successful changes.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crud6 import audit, locale
from crud6.api.deps import CRUDContext, get_crud_context, get_current_user_context
from crud6.api.permissions import require_permission
from crud6.db import schemas
from crud6.db.database import get_db
from crud6.db.repositories import records as record_repo
from crud6.services import fields as field_service
from crud6.services.sprunje import Sprunje, parse_options

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crud6", tags=["crud6"])


@router.get("/{model}")
def list_records(
    request: Request,
    ctx: CRUDContext = Depends(get_crud_context),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    require_permission(current_user, ctx.schema, "read")
    sprunje = Sprunje(ctx.db, ctx.schema, parse_options(request.query_params))
    return sprunje.get_results()


@router.post("/{model}", status_code=status.HTTP_201_CREATED, response_model=schemas.CreateResponse)
def create_record(
    payload: Dict[str, Any] = Body(...),
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    require_permission(current_user, ctx.schema, "create")

    data = dict(payload)
    field_service.validate_data(ctx.schema, data, db=ctx.db)
    field_service.hash_passwords(ctx.schema, data)

    record_id = record_repo.insert_record(ctx.db, ctx.schema, data, current_user=user)
    record = record_repo.find_record(ctx.db, ctx.schema, record_id)
    audit.log(
        db,
        model=ctx.model,
        action=audit.AuditAction.CREATE,
        target_id=record_id,
        actor_user_id=user.id,
        metadata={"connection": ctx.connection},
    )
    message = locale.translate("CRUD6.CREATE.SUCCESS", model=ctx.display_name)
    return {"title": message, "description": message, "id": record_id, "data": record}


@router.get("/{model}/{id}", response_model=schemas.RecordResponse)
def read_record(
    id: str,
    ctx: CRUDContext = Depends(get_crud_context),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    require_permission(current_user, ctx.schema, "read")
    record = record_repo.find_record(ctx.db, ctx.schema, id)
    return {
        "message": locale.translate("CRUD6.EDIT.SUCCESS", model=ctx.display_name),
        "model": ctx.model,
        "modelDisplayName": ctx.display_name,
        "id": record.get(ctx.primary_key, id),
        "data": record,
    }


@router.put("/{model}/{id}", response_model=schemas.MessageResponse)
def update_record(
    id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    require_permission(current_user, ctx.schema, "update")

    existing = record_repo.find_record(ctx.db, ctx.schema, id)
    data = dict(payload)
    field_service.validate_data(
        ctx.schema, data, partial=True, db=ctx.db, record_id=existing.get(ctx.primary_key)
    )
    field_service.hash_passwords(ctx.schema, data)

    record = record_repo.update_record(ctx.db, ctx.schema, id, data, current_user=user)
    audit.log(
        db,
        model=ctx.model,
        action=audit.AuditAction.UPDATE,
        target_id=id,
        actor_user_id=user.id,
        metadata={"fields": sorted(key for key in data if key in ctx.schema["fields"])},
    )
    return {
        "title": locale.translate("CRUD6.UPDATE.SUCCESS_TITLE"),
        "description": locale.translate("CRUD6.UPDATE.SUCCESS", model=ctx.display_name),
        "data": record,
    }


@router.put("/{model}/{id}/{field}", response_model=schemas.MessageResponse)
def update_record_field(
    id: str,
    field: str,
    payload: Dict[str, Any] = Body(...),
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    require_permission(current_user, ctx.schema, "update")

    definition = ctx.schema["fields"].get(field)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Field '{field}' not found on model '{ctx.model}'")
    if definition.get("readonly") or definition.get("editable") is False or definition.get("auto_increment"):
        raise HTTPException(status_code=400, detail=f"Field '{field}' is not editable")
    if field in payload:
        value = payload[field]
    elif "value" in payload:
        value = payload["value"]
    else:
        raise HTTPException(status_code=400, detail=f"Missing value for field '{field}'")

    existing = record_repo.find_record(ctx.db, ctx.schema, id)
    data = {field: value}
    field_service.validate_data(ctx.schema, data, partial=True, db=ctx.db, record_id=existing.get(ctx.primary_key))
    field_service.hash_passwords(ctx.schema, data)
    if field not in data:
        raise HTTPException(status_code=400, detail=f"Missing value for field '{field}'")

    record = record_repo.update_field(ctx.db, ctx.schema, id, field, data[field])
    audit.log(
        db,
        model=ctx.model,
        action=audit.AuditAction.UPDATE_FIELD,
        target_id=id,
        actor_user_id=user.id,
        metadata={"field": field},
    )
    label = definition.get("label") or field
    return {
        "title": locale.translate("CRUD6.UPDATE.SUCCESS_TITLE"),
        "description": locale.translate("CRUD6.UPDATE_FIELD_SUCCESSFUL", field=label, model=ctx.display_name),
        "data": record,
    }


@router.delete("/{model}/{id}", response_model=schemas.DeleteResponse)
def delete_record(
    id: str,
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    require_permission(current_user, ctx.schema, "delete")
    try:
        soft = record_repo.delete_record(ctx.db, ctx.schema, id, current_user=user)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=500, detail=locale.translate("CRUD6.DELETE.ERROR", model=ctx.display_name)
        )
    audit.log(
        db,
        model=ctx.model,
        action=audit.AuditAction.DELETE,
        target_id=id,
        actor_user_id=user.id,
        metadata={"soft_delete": soft},
    )
    return {
        "message": locale.translate("CRUD6.DELETE.SUCCESS", model=ctx.display_name),
        "model": ctx.model,
        "id": id,
        "soft_delete": soft,
    }
