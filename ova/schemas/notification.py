from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ova.models.notification import NotificationChannel, NotificationType


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: NotificationType
    channel: NotificationChannel
    reference_ids: Optional[List[int]] = None
    meta: Optional[Dict[str, Any]] = None
    read: bool
    created_at: datetime


class NotificationListOut(BaseModel):
    notifications: List[NotificationOut]
    count: int


class PreferenceIn(BaseModel):
    enabled: bool = True
    channel: NotificationChannel = NotificationChannel.EMAIL
    email: Optional[str] = None
    mobile: Optional[str] = None
    severity_ids: List[int] = Field(default_factory=list)
    incident_ids: List[int] = Field(default_factory=list)


class PreferenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    enabled: bool
    channel: NotificationChannel
    email: Optional[str] = None
    mobile: Optional[str] = None
    severity_ids: List[int] = []
    incident_ids: List[int] = []
