from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from ova.db.base import Base
from ova.utils.timez import utcnow


class User(Base):
    __tablename__ = "users"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    username = Column(String(120), unique=True, nullable=True)
    email = Column(String(191), unique=True,
                   nullable=False)  # <= 191, no index=True
    mobile_no = Column(String(30), nullable=True)
    password_hash = Column(String(255), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    # forced password change on first sign-in
    is_first_login = Column(Boolean, default=True, nullable=False)

    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True)
    role = relationship("Role", back_populates="users")

    department_id = Column(Integer,
                           ForeignKey("departments.id"),
                           nullable=True)
    department = relationship("Department", back_populates="users")

    notification_preferences = relationship(
        "NotificationPreference",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def role_name(self) -> str:
        return (self.role.name if self.role else "") or ""
