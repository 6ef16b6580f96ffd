"""
Relationship endpoints.

``GET /{model}/{id}/{relation}`` lists the child rows of a ``detail`` entry;
``POST`` and ``DELETE`` on the same path attach or detach many-to-many
related ids through the pivot table.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from crud6 import audit, locale
from crud6.api.deps import CRUDContext, get_crud_context, get_current_user_context
from crud6.api.permissions import require_permission
from crud6.db import schemas
from crud6.db.database import get_db
from crud6.db.repositories import records as record_repo
from crud6.schema.service import get_schema_service
from crud6.services import relationships as relationship_service
from crud6.services.sprunje import Sprunje, parse_options

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crud6", tags=["crud6"])


@router.get("/{model}/{id}/{relation}")
def list_related(
    id: str,
    relation: str,
    request: Request,
    ctx: CRUDContext = Depends(get_crud_context),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    require_permission(current_user, ctx.schema, "read")

    detail = next(
        (d for d in relationship_service.detail_configs(ctx.schema) if d.get("model") == relation),
        None,
    )
    if detail is None or not detail.get("foreign_key"):
        raise HTTPException(status_code=404, detail=f"Relation '{relation}' not found on model '{ctx.model}'")

    parent = record_repo.find_record(ctx.db, ctx.schema, id)
    parent_id = parent[ctx.primary_key]
    child_schema = get_schema_service().get_schema(relation, ctx.connection)
    foreign_key = detail["foreign_key"]

    sprunje = Sprunje(ctx.db, child_schema, parse_options(request.query_params), list_fields=detail.get("list_fields"))
    if foreign_key not in sprunje.table.c:
        raise HTTPException(status_code=404, detail=f"Relation '{relation}' not found on model '{ctx.model}'")
    sprunje.extend_query(lambda table: table.c[foreign_key] == parent_id)
    return sprunje.get_results()


def _change_relation(
    action: audit.AuditAction,
    id: str,
    relation: str,
    payload: schemas.RelationshipIds,
    ctx: CRUDContext,
    db: Session,
    user_context,
):
    user, current_user = user_context
    require_permission(current_user, ctx.schema, "update")

    if not payload.ids:
        raise HTTPException(status_code=400, detail="No ids provided")
    relationship = relationship_service.find_relationship(ctx.schema, relation)
    if relationship is None or relationship.get("type") != "many_to_many":
        raise HTTPException(status_code=404, detail=f"Relation '{relation}' not found on model '{ctx.model}'")

    parent = record_repo.find_record(ctx.db, ctx.schema, id)
    parent_id = parent[ctx.primary_key]
    if action == audit.AuditAction.ATTACH:
        count = relationship_service.attach_related(ctx.db, ctx.schema, parent_id, relation, payload.ids)
        message_key = "CRUD6.RELATIONSHIP.ATTACH_SUCCESS"
    else:
        count = relationship_service.detach_related(ctx.db, ctx.schema, parent_id, relation, payload.ids)
        message_key = "CRUD6.RELATIONSHIP.DETACH_SUCCESS"

    audit.log(
        db,
        model=ctx.model,
        action=action,
        target_id=parent_id,
        actor_user_id=user.id,
        metadata={"relation": relation, "ids": [str(value) for value in payload.ids], "count": count},
    )
    return {
        "title": locale.translate("CRUD6.ACTION.SUCCESS_TITLE"),
        "description": locale.translate(message_key, count=count, relation=relation),
        "data": {"relation": relation, "ids": payload.ids, "count": count},
    }


@router.post("/{model}/{id}/{relation}", response_model=schemas.MessageResponse)
def attach_related(
    id: str,
    relation: str,
    payload: schemas.RelationshipIds,
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return _change_relation(audit.AuditAction.ATTACH, id, relation, payload, ctx, db, user_context)


@router.delete("/{model}/{id}/{relation}", response_model=schemas.MessageResponse)
def detach_related(
    id: str,
    relation: str,
    payload: schemas.RelationshipIds,
    ctx: CRUDContext = Depends(get_crud_context),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    return _change_relation(audit.AuditAction.DETACH, id, relation, payload, ctx, db, user_context)
