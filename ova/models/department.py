from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from ova.db.base import Base
from ova.utils.timez import utcnow


class Department(Base):
    __tablename__ = "departments"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    users = relationship("User", back_populates="department")
    assignments = relationship("OccurrenceAssignment",
                               back_populates="department")
