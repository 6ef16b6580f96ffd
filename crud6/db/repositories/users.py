"""
User and permission repository functions.
"""
from __future__ import annotations

import uuid
from typing import List, Optional
from sqlalchemy.orm import Session

from crud6.db import models


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def get_or_create_permission(db: Session, slug: str, name: Optional[str] = None) -> models.Permission:
    permission = db.query(models.Permission).filter(models.Permission.slug == slug).first()
    if permission:
        return permission
    permission = models.Permission(slug=slug, name=name or slug)
    db.add(permission)
    db.commit()
    db.refresh(permission)
    return permission


def grant_permission(db: Session, user_id: uuid.UUID, slug: str) -> models.Permission:
    permission = get_or_create_permission(db, slug)
    exists = (
        db.query(models.UserPermission)
        .filter(
            models.UserPermission.user_id == user_id,
            models.UserPermission.permission_id == permission.id,
        )
        .first()
    )
    if not exists:
        db.add(models.UserPermission(user_id=user_id, permission_id=permission.id))
        db.commit()
    return permission


def revoke_permission(db: Session, user_id: uuid.UUID, slug: str) -> bool:
    permission = db.query(models.Permission).filter(models.Permission.slug == slug).first()
    if not permission:
        return False
    deleted = (
        db.query(models.UserPermission)
        .filter(
            models.UserPermission.user_id == user_id,
            models.UserPermission.permission_id == permission.id,
        )
        .delete()
    )
    db.commit()
    return bool(deleted)


def get_permission_slugs(db: Session, user_id: uuid.UUID) -> List[str]:
    rows = (
        db.query(models.Permission.slug)
        .join(models.UserPermission, models.UserPermission.permission_id == models.Permission.id)
        .filter(models.UserPermission.user_id == user_id)
        .all()
    )
    return sorted(slug for (slug,) in rows)
