# FILE: ova/services/reports.py
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from ova.models.department import Department
from ova.models.incident import Incident, Severity
from ova.models.occurrence import (
    Occurrence,
    OccurrenceAssignment,
    OccurrenceLocation,
    OccurrenceStatus,
)
from ova.utils.timez import to_naive_utc, utcnow

UNKNOWN = "Unknown"

CSV_HEADERS = [
    "Occurrence No",
    "Occurrence Date",
    "Status",
    "Incident",
    "Severity",
    "Location",
    "MRN",
    "Patient Involved",
    "Departments",
    "Reported By",
    "Created At",
    "Description",
]


@dataclass
class ReportFilters:
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    status_ids: List[int] = field(default_factory=list)
    severity_ids: List[int] = field(default_factory=list)
    department_ids: List[int] = field(default_factory=list)
    location_ids: List[int] = field(default_factory=list)
    incident_ids: List[int] = field(default_factory=list)
    patient_involved: Optional[bool] = None


def _filtered(db: Session, f: ReportFilters):
    q = db.query(Occurrence)
    if f.date_from:
        q = q.filter(Occurrence.occurrence_date >= to_naive_utc(f.date_from))
    if f.date_to:
        q = q.filter(Occurrence.occurrence_date <= to_naive_utc(f.date_to))
    if f.status_ids:
        q = q.filter(Occurrence.status_id.in_(f.status_ids))
    if f.severity_ids:
        q = q.filter(
            Occurrence.incident.has(Incident.severity_id.in_(f.severity_ids)))
    if f.department_ids:
        q = q.filter(
            Occurrence.assignments.any(
                OccurrenceAssignment.department_id.in_(f.department_ids)))
    if f.location_ids:
        q = q.filter(Occurrence.location_id.in_(f.location_ids))
    if f.incident_ids:
        q = q.filter(Occurrence.incident_id.in_(f.incident_ids))
    if f.patient_involved is not None:
        q = q.filter(Occurrence.is_patient_involve.is_(f.patient_involved))
    return q


def summary_report(db: Session, f: ReportFilters) -> List[Occurrence]:
    """Matching occurrences with relations, newest first."""
    return (_filtered(db, f).options(
        joinedload(Occurrence.status),
        joinedload(Occurrence.location),
        joinedload(Occurrence.created_by),
        joinedload(Occurrence.incident).joinedload(Incident.severity),
        selectinload(Occurrence.assignments).joinedload(
            OccurrenceAssignment.department),
    ).order_by(Occurrence.occurrence_date.desc(),
               Occurrence.id.desc()).all())


def _grouped(db: Session, q, key_col, name_model) -> List[Dict[str, Any]]:
    rows = (q.with_entities(key_col, func.count(Occurrence.id)).group_by(
        key_col).all())
    ids = [k for k, _ in rows if k is not None]
    names = {}
    if ids:
        names = dict(
            db.query(name_model.id,
                     name_model.name).filter(name_model.id.in_(ids)).all())
    return [{
        "id": k,
        "name": names.get(k, UNKNOWN),
        "count": int(c)
    } for k, c in rows if k is not None]


def report_statistics(db: Session, f: ReportFilters) -> Dict[str, Any]:
    q = _filtered(db, f)
    # no auto-correlation: the severity query also selects from occurrences
    ids_subq = q.with_entities(Occurrence.id).statement.correlate(None)

    total = q.count()
    patient_involved = q.filter(Occurrence.is_patient_involve.is_(True)).count()

    sev_rows = (db.query(Severity.id, Severity.name,
                         func.count(Occurrence.id)).join(
                             Incident, Incident.severity_id == Severity.id).join(
                                 Occurrence,
                                 Occurrence.incident_id == Incident.id).filter(
                                     Occurrence.id.in_(ids_subq)).group_by(
                                         Severity.id, Severity.name).all())

    dept_counts = dict(
        db.query(OccurrenceAssignment.department_id,
                 func.count(OccurrenceAssignment.id)).filter(
                     OccurrenceAssignment.occurrence_id.in_(ids_subq)).group_by(
                         OccurrenceAssignment.department_id).all())
    dept_names = dict(
        db.query(Department.id, Department.name).filter(
            Department.id.in_(list(dept_counts))).all()) if dept_counts else {}

    return {
        "total_occurrences": total,
        "patient_involved": patient_involved,
        "by_status": _grouped(db, q, Occurrence.status_id, OccurrenceStatus),
        "by_severity": [{
            "id": sid,
            "name": name or UNKNOWN,
            "count": int(c)
        } for sid, name, c in sev_rows],
        "by_department": [{
            "id": did,
            "name": dept_names.get(did, UNKNOWN),
            "count": int(c)
        } for did, c in dept_counts.items()],
        "by_location": _grouped(db, q, Occurrence.location_id,
                                OccurrenceLocation),
        "by_incident": _grouped(db, q, Occurrence.incident_id, Incident),
    }


def filter_options(db: Session) -> Dict[str, Any]:

    def pairs(model, order):
        return [{
            "id": i,
            "name": n
        } for i, n in db.query(model.id, model.name).order_by(order).all()]

    return {
        "statuses": pairs(OccurrenceStatus, OccurrenceStatus.name),
        "severities": pairs(Severity, Severity.level),
        "departments": pairs(Department, Department.name),
        "locations": pairs(OccurrenceLocation, OccurrenceLocation.name),
        "incidents": [{
            "id": i,
            "name": n
        } for i, n in db.query(Incident.id, Incident.name).filter(
            Incident.parent_id.is_(None)).order_by(Incident.name).all()],
    }


# ---------- export ----------


def _fmt_dt(d: Optional[datetime]) -> str:
    return d.strftime("%Y-%m-%d %H:%M") if d else ""


def occurrence_row(o: Occurrence) -> List[Any]:
    inc = o.incident
    return [
        o.occurrence_no,
        _fmt_dt(o.occurrence_date),
        o.status.name if o.status else "",
        inc.name if inc else "",
        inc.severity.name if inc and inc.severity else "",
        o.location.name if o.location else "",
        o.mrn or "",
        "Yes" if o.is_patient_involve else "No",
        ", ".join(a.department.name for a in o.assignments if a.department),
        o.created_by.name if o.created_by else "Anonymous",
        _fmt_dt(o.created_at),
        o.description or "",
    ]


def export_csv(occurrences: List[Occurrence]) -> str:
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(CSV_HEADERS)
    for o in occurrences:
        w.writerow(occurrence_row(o))
    return buf.getvalue()


def export_json(occurrences: List[Occurrence],
                statistics: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "export_date": utcnow().isoformat(),
        "statistics": statistics,
        "occurrences": [dict(zip(CSV_HEADERS, occurrence_row(o)))
                        for o in occurrences],
    }
