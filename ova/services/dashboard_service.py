# FILE: ova/services/dashboard_service.py
from __future__ import annotations

from typing import Any, Dict

from sqlalchemy.orm import Session

from ova.core import rbac
from ova.models.incident import Incident, Severity
from ova.models.occurrence import (
    Occurrence,
    OccurrenceAssignment,
    OccurrenceStatus,
    STATUS_CLOSED,
    STATUS_OPEN,
)
from ova.models.user import User

GLOBAL_DASHBOARD_ROLES = {"ADMIN", "QUALITY_ASSURANCE"}
DEPARTMENT_DASHBOARD_ROLES = {"DEPARTMENT_MANAGER", "DEPARTMENT_HEAD"}

HIGH_RISK_LEVEL = 3  # HIGH, CRITICAL
RESOLVED_STATUSES = (STATUS_CLOSED, "RESOLVED")


class DashboardError(Exception):

    def __init__(self, msg: str, status_code: int = 403):
        super().__init__(msg)
        self.status_code = status_code


def _pct(part: int, whole: int) -> int:
    return int(round(part * 100.0 / whole)) if whole else 0


def global_stats(db: Session) -> Dict[str, Any]:
    total = db.query(Occurrence).count()
    open_count = (db.query(Occurrence).join(Occurrence.status).filter(
        OccurrenceStatus.name == STATUS_OPEN).count())
    high_risk = (db.query(Occurrence).join(Occurrence.incident).join(
        Incident.severity).filter(Severity.level >= HIGH_RISK_LEVEL).count())
    resolved = (db.query(Occurrence).join(Occurrence.status).filter(
        OccurrenceStatus.name.in_(RESOLVED_STATUSES)).count())
    return {
        "total_occurrences": total,
        "open_occurrences": open_count,
        "completed_occurrences": None,
        "high_risk_occurrences": high_risk,
        "resolution_rate": _pct(resolved, total),
        "is_department": False,
        "department_name": None,
    }


def department_stats(db: Session, department_id: int) -> Dict[str, int]:
    """Counts over one department's assignments."""
    base = db.query(OccurrenceAssignment).filter(
        OccurrenceAssignment.department_id == department_id)
    total = base.count()
    completed = base.filter(
        OccurrenceAssignment.completed_at.isnot(None)).count()
    high_risk = (base.join(OccurrenceAssignment.occurrence).join(
        Occurrence.incident).join(Incident.severity).filter(
            Severity.level >= HIGH_RISK_LEVEL).count())
    return {
        "total_occurrences": total,
        "open_occurrences": total - completed,
        "completed_occurrences": completed,
        "high_risk_occurrences": high_risk,
    }


def get_dashboard(db: Session, user: User) -> Dict[str, Any]:
    role = rbac.role_name(user)

    if role in GLOBAL_DASHBOARD_ROLES:
        return global_stats(db)

    if role in DEPARTMENT_DASHBOARD_ROLES:
        if not user.department_id or not user.department:
            raise DashboardError("You are not assigned to any department.")
        out: Dict[str, Any] = dict(department_stats(db, user.department_id))
        out.update({
            "resolution_rate": None,
            "is_department": True,
            "department_name": user.department.name,
        })
        return out

    raise DashboardError("Insufficient permissions.")
