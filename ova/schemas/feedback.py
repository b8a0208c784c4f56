from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class TokenCreateIn(BaseModel):
    assignment_id: int
    # optional external recipient; the link is mailed when given
    email: Optional[EmailStr] = None


class TokenCreateOut(BaseModel):
    token: str
    link: str
    expires_at: datetime
    emailed: bool = False


class FeedbackSubmitIn(BaseModel):
    token: str = Field(min_length=1)
    message: str = Field(min_length=1)


class FeedbackOccurrenceOut(BaseModel):
    """What the external respondent sees. No patient identifiers."""
    occurrence_no: str
    description: str
    occurrence_date: Optional[datetime] = None
    department_name: str
    referral_message: Optional[str] = None
    shared_by: Optional[str] = None


class TokenCheckOut(BaseModel):
    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    expires_at: Optional[datetime] = None
    occurrence: Optional[FeedbackOccurrenceOut] = None


class FeedbackTokenOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    shared_by_id: Optional[int] = None
    used: bool
    expires_at: datetime
    created_at: datetime
    response_message: Optional[str] = None
    responded_at: Optional[datetime] = None
