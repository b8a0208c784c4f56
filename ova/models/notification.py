# FILE: ova/models/notification.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    Table,
    Enum as SAEnum,
    JSON,
)
from sqlalchemy.orm import relationship

from ova.db.base import Base
from ova.utils.timez import utcnow


class NotificationChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    MOBILE = "MOBILE"
    BOTH = "BOTH"


class NotificationType(str, enum.Enum):
    OCCURRENCE_CREATED = "OCCURRENCE_CREATED"
    OCCURRENCE_UPDATED = "OCCURRENCE_UPDATED"
    REFERRAL = "REFERRAL"
    FEEDBACK = "FEEDBACK"


notification_preference_severities = Table(
    "notification_preference_severities",
    Base.metadata,
    Column("preference_id",
           Integer,
           ForeignKey("notification_preferences.id", ondelete="CASCADE"),
           primary_key=True),
    Column("severity_id",
           Integer,
           ForeignKey("severities.id", ondelete="CASCADE"),
           primary_key=True),
)

notification_preference_incidents = Table(
    "notification_preference_incidents",
    Base.metadata,
    Column("preference_id",
           Integer,
           ForeignKey("notification_preferences.id", ondelete="CASCADE"),
           primary_key=True),
    Column("incident_id",
           Integer,
           ForeignKey("incidents.id", ondelete="CASCADE"),
           primary_key=True),
)


class NotificationPreference(Base):
    """
    What a user wants to hear about, and how.
    Empty severity / incident selections match nothing.
    """
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer,
                     ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False,
                     index=True)
    enabled = Column(Boolean, nullable=False, default=True)
    channel = Column(SAEnum(NotificationChannel,
                            name="notification_channel",
                            native_enum=False),
                     nullable=False,
                     default=NotificationChannel.EMAIL)
    email = Column(String(191), nullable=True)
    mobile = Column(String(30), nullable=True)

    user = relationship("User", back_populates="notification_preferences")
    severities = relationship("Severity",
                              secondary=notification_preference_severities)
    incidents = relationship("Incident",
                             secondary=notification_preference_incidents)

    @property
    def severity_ids(self) -> list[int]:
        return [s.id for s in self.severities]

    @property
    def incident_ids(self) -> list[int]:
        return [i.id for i in self.incidents]


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer,
                     ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False,
                     index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SAEnum(NotificationType,
                         name="notification_type",
                         native_enum=False),
                  nullable=False)
    channel = Column(SAEnum(NotificationChannel,
                            name="notification_channel",
                            native_enum=False),
                     nullable=False)

    # occurrence ids this notification is about
    reference_ids = Column(JSON, nullable=True)
    meta = Column("metadata", JSON, nullable=True)

    read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    user = relationship("User")
