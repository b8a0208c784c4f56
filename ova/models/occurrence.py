# FILE: ova/models/occurrence.py
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
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ova.db.base import Base
from ova.utils.timez import utcnow

# Status names (rows seeded by init_db)
STATUS_OPEN = "OPEN"
STATUS_ASSIGNED = "ASSIGNED"
STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_ANSWERED = "ANSWERED"
STATUS_ANSWERED_PARTIALLY = "ANSWERED_PARTIALLY"
STATUS_COMPLETED = "COMPLETED"
STATUS_CLOSED = "CLOSED"


class OccurrenceStatus(Base):
    __tablename__ = "occurrence_statuses"

    id = Column(Integer, primary_key=True)
    name = Column(String(40), unique=True, nullable=False)
    variant = Column(String(30), nullable=False, default="default")


class OccurrenceLocation(Base):
    __tablename__ = "occurrence_locations"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), unique=True, nullable=False)


class Occurrence(Base):
    """
    A reported incident.
    - occurrence_no: OCC<yy>-<nnnn>, assigned on create
    - created_by_id is NULL for anonymous reports
    - *_by_quality_at: when QA referred / closed it
    """
    __tablename__ = "occurrences"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True)
    occurrence_no = Column(String(30), unique=True, nullable=False)

    mrn = Column(String(10), nullable=True, index=True)
    is_patient_involve = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=False)
    occurrence_date = Column(DateTime, nullable=True, index=True)

    location_id = Column(Integer,
                         ForeignKey("occurrence_locations.id"),
                         nullable=True,
                         index=True)
    incident_id = Column(Integer,
                         ForeignKey("incidents.id"),
                         nullable=False,
                         index=True)
    status_id = Column(Integer,
                       ForeignKey("occurrence_statuses.id"),
                       nullable=False,
                       index=True)

    created_by_id = Column(Integer,
                           ForeignKey("users.id", ondelete="SET NULL"),
                           nullable=True,
                           index=True)
    updated_by_id = Column(Integer,
                           ForeignKey("users.id", ondelete="SET NULL"),
                           nullable=True)

    assigned_by_quality_at = Column(DateTime, nullable=True)
    closed_by_quality_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime,
                        nullable=False,
                        default=utcnow,
                        onupdate=utcnow)

    location = relationship("OccurrenceLocation")
    incident = relationship("Incident")
    status = relationship("OccurrenceStatus")
    created_by = relationship("User", foreign_keys=[created_by_id])
    updated_by = relationship("User", foreign_keys=[updated_by_id])

    assignments = relationship(
        "OccurrenceAssignment",
        back_populates="occurrence",
        cascade="all, delete-orphan",
        order_by="OccurrenceAssignment.id",
    )
    messages = relationship(
        "OccurrenceMessage",
        back_populates="occurrence",
        cascade="all, delete-orphan",
        order_by="OccurrenceMessage.created_at",
    )


class OccurrenceAssignment(Base):
    """
    A department's work item on an occurrence (referral).
    completed_at is set once the department submits root cause + action plan.
    """
    __tablename__ = "occurrence_assignments"
    __table_args__ = (
        UniqueConstraint("occurrence_id",
                         "department_id",
                         name="uq_assignment_occurrence_department"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id = Column(Integer, primary_key=True)
    occurrence_id = Column(Integer,
                           ForeignKey("occurrences.id", ondelete="CASCADE"),
                           nullable=False,
                           index=True)
    department_id = Column(Integer,
                           ForeignKey("departments.id"),
                           nullable=False,
                           index=True)

    message = Column(Text, nullable=True)  # referral note from QA
    root_cause = Column(Text, nullable=True)
    action_plan = Column(Text, nullable=True)

    assigned_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)

    occurrence = relationship("Occurrence", back_populates="assignments")
    department = relationship("Department", back_populates="assignments")
    feedback_tokens = relationship(
        "FeedbackToken",
        back_populates="assignment",
        cascade="all, delete-orphan",
    )

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class OccurrenceMessage(Base):
    """
    Group thread on an occurrence.
    recipient_department_id NULL == visible to every party on the occurrence.
    """
    __tablename__ = "occurrence_messages"

    id = Column(Integer, primary_key=True)
    occurrence_id = Column(Integer,
                           ForeignKey("occurrences.id", ondelete="CASCADE"),
                           nullable=False,
                           index=True)
    sender_id = Column(Integer,
                       ForeignKey("users.id", ondelete="SET NULL"),
                       nullable=True,
                       index=True)
    recipient_department_id = Column(Integer,
                                     ForeignKey("departments.id"),
                                     nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    occurrence = relationship("Occurrence", back_populates="messages")
    sender = relationship("User")


Index("ix_occurrences_status_date", Occurrence.status_id,
      Occurrence.occurrence_date)
