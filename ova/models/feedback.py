# ova/models/feedback.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from ova.db.base import Base
from ova.utils.timez import utcnow


class FeedbackToken(Base):
    """
    Single-use, time-limited link that lets an external party post one
    feedback message against an assignment.
    """
    __tablename__ = "feedback_tokens"
    __table_args__ = (
        Index("ix_feedback_assignment_used", "assignment_id", "used"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, nullable=False)

    assignment_id = Column(Integer,
                           ForeignKey("occurrence_assignments.id",
                                      ondelete="CASCADE"),
                           nullable=False,
                           index=True)
    shared_by_id = Column(Integer,
                          ForeignKey("users.id", ondelete="SET NULL"),
                          nullable=True,
                          index=True)

    used = Column(Boolean, default=False, nullable=False,
                  server_default=text("0"))
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    response_message = Column(Text, nullable=True)
    responded_at = Column(DateTime, nullable=True)

    assignment = relationship("OccurrenceAssignment",
                              back_populates="feedback_tokens")
    shared_by = relationship("User")
