from pydantic import BaseModel, ConfigDict, Field
from typing import List


class RoleBase(BaseModel):
    name: str = Field(min_length=2)
    description: str | None = None


class RoleCreate(RoleBase):
    permission_ids: List[int] = []


class RoleOut(RoleBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    permission_ids: List[int] = []


class RolePermissionsIn(BaseModel):
    permission_ids: List[int]
