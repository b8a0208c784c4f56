# FILE: ova/models/audit.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
)

from ova.db.base import Base
from ova.utils.timez import utcnow


class AuditLog(Base):
    """
    Who changed what.
    Occurrence workflow steps and admin CRUD write here.
    """
    __tablename__ = "audit_logs"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, nullable=True, index=True)  # NULL: public/system
    action = Column(String(30), nullable=False)  # CREATE / UPDATE / REFER ...

    table_name = Column(String(100), nullable=False, index=True)
    record_id = Column(String(100), nullable=False)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
