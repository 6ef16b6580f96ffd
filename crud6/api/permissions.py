"""
Permission checks for schema operations.

A schema names the permission slug per operation in ``permissions``;
operations without one fall back to ``crud6.{model}.{operation}``.
Superadmins pass every check.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


def permission_slug(schema: Dict[str, Any], operation: str) -> str:
    permissions = schema.get("permissions") or {}
    return permissions.get(operation) or f"crud6.{schema['model']}.{operation}"


def has_permission(current_user: Optional[Dict[str, Any]], slug: str) -> bool:
    if not current_user:
        return False
    if current_user.get("is_superadmin"):
        return True
    return slug in (current_user.get("permissions") or ())


def require_slug(current_user: Optional[Dict[str, Any]], slug: str) -> None:
    if not has_permission(current_user, slug):
        logger.info("permission_denied: user=%s slug=%s", (current_user or {}).get("email"), slug)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Access denied: missing permission '{slug}'")


def require_permission(current_user: Optional[Dict[str, Any]], schema: Dict[str, Any], operation: str) -> None:
    require_slug(current_user, permission_slug(schema, operation))
