# FILE: ova/models/incident.py
from __future__ import annotations

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from ova.db.base import Base


class Severity(Base):
    """
    LOW(1) / MEDIUM(2) / HIGH(3) / CRITICAL(4).
    `variant` is the badge style the UI renders.
    """
    __tablename__ = "severities"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)
    level = Column(Integer, nullable=False, default=1, index=True)
    variant = Column(String(30), nullable=False, default="outline")

    incidents = relationship("Incident", back_populates="severity")


class Incident(Base):
    """
    Incident taxonomy node: main -> sub -> sub-sub.
    Occurrences point at any node; notifications match on the top-level one.
    """
    __tablename__ = "incidents"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)

    severity_id = Column(Integer, ForeignKey("severities.id"), nullable=False)
    parent_id = Column(Integer,
                       ForeignKey("incidents.id", ondelete="SET NULL"),
                       nullable=True,
                       index=True)

    # id/level carried over from taxonomy imports
    old_id = Column(String(50), nullable=True, index=True)
    category = Column(String(50), nullable=True)

    severity = relationship("Severity", back_populates="incidents")
    parent = relationship("Incident",
                          remote_side=[id],
                          back_populates="children")
    children = relationship("Incident",
                            back_populates="parent",
                            order_by="Incident.name")
