from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class RelationshipIds(BaseModel):
    ids: List[Any] = Field(default_factory=list)


class MessageResponse(BaseModel):
    title: str
    description: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class RecordResponse(BaseModel):
    message: str
    model: str
    modelDisplayName: str
    id: Any
    data: Dict[str, Any]


class DeleteResponse(BaseModel):
    message: str
    model: str
    id: Any
    soft_delete: bool


class ConfigResponse(BaseModel):
    debug_mode: bool


class CreateResponse(BaseModel):
    title: str
    description: Optional[str] = None
    id: Any
    data: Dict[str, Any]
