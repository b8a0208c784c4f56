from pydantic import BaseModel, Field
from typing import List

from ova.schemas.user import UserMiniOut


class DepartmentBase(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    description: str | None = None


class DepartmentCreate(DepartmentBase):
    pass


class DepartmentOut(DepartmentBase):
    id: int

    class Config:
        from_attributes = True


class DepartmentDetailOut(DepartmentOut):
    users: List[UserMiniOut] = []


class DepartmentStatsOut(BaseModel):
    total_occurrences: int
    open_occurrences: int
    completed_occurrences: int
    high_risk_occurrences: int
