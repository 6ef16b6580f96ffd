"""Schema endpoint: the per-context slice of a model's schema for the admin panel."""
from typing import Optional

from fastapi import APIRouter, Depends

from crud6 import locale
from crud6.api.deps import CRUDContext, get_crud_context, get_current_user_context
from crud6.api.permissions import require_permission
from crud6.schema.service import get_schema_service

router = APIRouter(prefix="/api/crud6", tags=["crud6"])


@router.get("/{model}/schema")
def get_model_schema(
    context: Optional[str] = None,
    ctx: CRUDContext = Depends(get_crud_context),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    require_permission(current_user, ctx.schema, "read")
    schema = get_schema_service().get_context_schema(ctx.model, context, ctx.connection)
    return {
        "message": locale.translate("CRUD6.SCHEMA.SUCCESS", model=ctx.display_name),
        "model": ctx.model,
        "modelDisplayName": ctx.display_name,
        "schema": schema,
    }
