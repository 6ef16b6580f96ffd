"""
SQLAlchemy models for the tables the service owns.

Schema-described tables are reflected at runtime (see `crud6.db.tables`) and
never declared here.
"""

from .base import Base, now_utc  # re-export

from .users import User, Permission, UserPermission
from .audit import AuditLog

__all__ = [
    "Base",
    "now_utc",
    "User",
    "Permission",
    "UserPermission",
    "AuditLog",
]
