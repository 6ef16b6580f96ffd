"""Pydantic request/response models."""

from .audits import AuditLogBase, AuditLogCreate, AuditLog
from .records import (
    RelationshipIds,
    MessageResponse,
    RecordResponse,
    DeleteResponse,
    ConfigResponse,
    CreateResponse,
)

__all__ = [
    "AuditLogBase",
    "AuditLogCreate",
    "AuditLog",
    "RelationshipIds",
    "MessageResponse",
    "RecordResponse",
    "DeleteResponse",
    "ConfigResponse",
    "CreateResponse",
]
