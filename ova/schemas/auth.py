# ova/schemas/auth.py
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class RefreshIn(BaseModel):
    refresh_token: str


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    is_first_login: bool = False


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class FirstLoginPasswordIn(BaseModel):
    new_password: str = Field(min_length=8)
    confirm_password: str


class MeOut(BaseModel):
    id: int
    name: str
    email: str
    username: Optional[str] = None
    mobile_no: Optional[str] = None
    is_first_login: bool
    role: Optional[str] = None
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    permissions: List[str] = []
