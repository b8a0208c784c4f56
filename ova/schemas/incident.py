from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SeverityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    level: int
    variant: str


class IncidentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    severity_id: int
    parent_id: Optional[int] = None


class IncidentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    severity_id: Optional[int] = None
    parent_id: Optional[int] = None


class IncidentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    severity_id: int
    parent_id: Optional[int] = None
    old_id: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[SeverityOut] = None


class IncidentWithChildrenOut(IncidentOut):
    children: List[IncidentOut] = []


class IncidentNode(BaseModel):
    id: int
    name: str
    severity_id: int
    parent_id: Optional[int] = None
    children: List["IncidentNode"] = []


class LocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class StatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    variant: str


IncidentNode.model_rebuild()
