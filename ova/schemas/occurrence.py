# FILE: ova/schemas/occurrence.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ova.schemas.incident import IncidentOut, LocationOut, StatusOut
from ova.schemas.user import UserMiniOut


class OccurrenceIn(BaseModel):
    """Report body. Shared by the signed-in and the anonymous form."""
    mrn: Optional[str] = None
    is_patient_involve: bool = False
    description: str = Field(min_length=10)
    location_id: Optional[int] = None
    incident_id: int
    occurrence_date: datetime
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None

    @field_validator("mrn")
    @classmethod
    def _mrn_len(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        if not v:
            return None
        if len(v) != 10:
            raise ValueError("MRN must be 10 characters")
        return v

    @field_validator("contact_email", "contact_phone", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ReferIn(BaseModel):
    occurrence_ids: List[int] = Field(min_length=1)
    department_ids: List[int] = Field(min_length=1)
    message: Optional[str] = None


class ReferOut(BaseModel):
    assignment_ids: List[int]


class ActionIn(BaseModel):
    root_cause: str = Field(min_length=5)
    action_plan: str = Field(min_length=10)


class MessageIn(BaseModel):
    message: str = Field(min_length=1)


class DepartmentLite(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    occurrence_id: int
    department_id: int
    department: Optional[DepartmentLite] = None
    message: Optional[str] = None
    root_cause: Optional[str] = None
    action_plan: Optional[str] = None
    assigned_at: datetime
    completed_at: Optional[datetime] = None
    is_completed: bool = False


class OccurrenceListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    occurrence_no: str
    mrn: Optional[str] = None
    is_patient_involve: bool
    description: str
    occurrence_date: Optional[datetime] = None
    created_at: datetime
    status: Optional[StatusOut] = None
    location: Optional[LocationOut] = None
    incident: Optional[IncidentOut] = None
    assignments: List[AssignmentOut] = []


class OccurrenceOut(OccurrenceListItem):
    updated_at: datetime
    created_by: Optional[UserMiniOut] = None
    updated_by: Optional[UserMiniOut] = None
    assigned_by_quality_at: Optional[datetime] = None
    closed_by_quality_at: Optional[datetime] = None


class OccurrencePage(BaseModel):
    items: List[OccurrenceListItem]
    total: int
    page: int
    page_size: int


class SenderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    department: Optional[DepartmentLite] = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    occurrence_id: int
    message: str
    created_at: datetime
    sender: Optional[SenderOut] = None
