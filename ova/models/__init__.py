# FILE: ova/models/__init__.py
from ova.models.department import Department
from ova.models.permission import Permission
from ova.models.role import Role, RolePermission
from ova.models.user import User
from ova.models.incident import Severity, Incident
from ova.models.occurrence import (
    OccurrenceStatus,
    OccurrenceLocation,
    Occurrence,
    OccurrenceAssignment,
    OccurrenceMessage,
)
from ova.models.feedback import FeedbackToken
from ova.models.notification import (
    NotificationChannel,
    NotificationType,
    NotificationPreference,
    Notification,
)
from ova.models.audit import AuditLog

__all__ = [
    "Department",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "Severity",
    "Incident",
    "OccurrenceStatus",
    "OccurrenceLocation",
    "Occurrence",
    "OccurrenceAssignment",
    "OccurrenceMessage",
    "FeedbackToken",
    "NotificationChannel",
    "NotificationType",
    "NotificationPreference",
    "Notification",
    "AuditLog",
]
