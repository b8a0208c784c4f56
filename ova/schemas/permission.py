from pydantic import BaseModel, ConfigDict, Field


class PermissionBase(BaseModel):
    code: str = Field(min_length=2, max_length=100)
    name: str = Field(min_length=2)
    description: str | None = None


class PermissionCreate(PermissionBase):
    pass


class PermissionOut(PermissionBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
