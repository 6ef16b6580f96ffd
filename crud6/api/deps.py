"""
API dependency helpers.

Resolves the acting user from proxy headers and the CRUD context (model,
connection, schema and record session) from the ``{model}`` path segment.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from crud6.api.auth import get_or_create_user, resolve_identity_from_headers
from crud6.config import dev_mode_active
from crud6.db.database import get_db, session_for
from crud6.db.repositories import users as user_repo
from crud6.exceptions import InvalidModelName
from crud6.schema.service import get_schema_service

MODEL_NAME = re.compile(r"^[a-zA-Z0-9_]+$")


# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 if identity cannot be resolved.

def get_current_user_context(
    db: Session = Depends(get_db),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[Any, Dict[str, Any]]:
    if dev_mode_active():
        email = "dev@localhost"
        name = "Development User"
    else:
        name, email = resolve_identity_from_headers(
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = get_or_create_user(db, email=email, display_name=name)

    current_user = {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": bool(getattr(user, "is_superadmin", False)),
        "permissions": set(user_repo.get_permission_slugs(db, user.id)),
    }
    return user, current_user


def parse_model_param(model: str) -> Tuple[str, Optional[str]]:
    """Split ``name@connection`` and validate the model name."""
    name, _, connection = model.partition("@")
    if not MODEL_NAME.match(name):
        raise InvalidModelName(f"Invalid model name: {name}")
    if connection and not MODEL_NAME.match(connection):
        raise InvalidModelName(f"Invalid connection name: {connection}")
    return name, connection or None


@dataclass
class CRUDContext:
    model: str
    connection: Optional[str]
    schema: Dict[str, Any]
    db: Session

    @property
    def display_name(self) -> str:
        return self.schema.get("singular_title") or self.schema.get("title") or self.model.capitalize()

    @property
    def primary_key(self) -> str:
        return self.schema.get("primary_key", "id")


def get_crud_context(model: str, db: Session = Depends(get_db)):
    name, connection = parse_model_param(model)
    schema = get_schema_service().get_schema(name, connection)
    connection = connection or schema.get("connection")
    if not connection:
        yield CRUDContext(model=name, connection=None, schema=schema, db=db)
        return
    record_db = session_for(connection)
    try:
        yield CRUDContext(model=name, connection=connection, schema=schema, db=record_db)
    finally:
        record_db.close()
