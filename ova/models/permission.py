from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from ova.db.base import Base


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    # "<action>:<subject>", e.g. view:occurrence, admin:all
    code = Column(String(100), unique=True, nullable=False)
    name = Column(String(150), nullable=False)
    description = Column(String(255), nullable=True)

    roles = relationship("Role",
                         secondary="role_permissions",
                         back_populates="permissions")
