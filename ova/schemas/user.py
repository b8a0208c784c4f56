# ova/schemas/user.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class UserBase(BaseModel):
    name: str = Field(min_length=2)
    email: EmailStr
    username: Optional[str] = None
    mobile_no: Optional[str] = None
    is_active: bool = True


class UserCreate(UserBase):
    password: str = Field(min_length=8)
    department_id: Optional[int] = None
    role_id: Optional[int] = None


class UserUpdate(BaseModel):
    name: str = Field(min_length=2)
    email: EmailStr
    username: Optional[str] = None
    mobile_no: Optional[str] = None
    is_active: bool = True
    department_id: Optional[int] = None
    role_id: Optional[int] = None
    # None => keep the current password
    password: Optional[str] = Field(default=None, min_length=8)


class UserOut(UserBase):
    id: int
    email: str
    is_first_login: bool
    department_id: Optional[int]
    role_id: Optional[int]
    role_name: str = ""

    class Config:
        from_attributes = True


class UserMiniOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True
