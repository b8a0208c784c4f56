# FILE: ova/services/occurrences.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from ova.core import rbac
from ova.models.department import Department
from ova.models.feedback import FeedbackToken
from ova.models.incident import Incident
from ova.models.occurrence import (
    Occurrence,
    OccurrenceAssignment,
    OccurrenceLocation,
    OccurrenceMessage,
    OccurrenceStatus,
    STATUS_ANSWERED,
    STATUS_ANSWERED_PARTIALLY,
    STATUS_ASSIGNED,
    STATUS_CLOSED,
    STATUS_OPEN,
)
from ova.models.user import User
from ova.services import notifications
from ova.services.audit_logger import log_audit
from ova.services.occurrence_numbers import next_occurrence_no
from ova.utils.timez import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

MRN_LENGTH = 10
MIN_DESCRIPTION = 10
MIN_ROOT_CAUSE = 5
MIN_ACTION_PLAN = 10


class OccurrenceError(Exception):

    def __init__(self, msg: str, status_code: int = 400):
        super().__init__(msg)
        self.status_code = status_code


@dataclass
class OccurrenceFilters:
    search: Optional[str] = None
    status: Optional[str] = None
    severity_id: Optional[int] = None
    location_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    mrn: Optional[str] = None
    department_id: Optional[int] = None
    # visibility: referred to this department OR reported by this user
    visible_department_id: Optional[int] = None
    visible_user_id: Optional[int] = None


@dataclass
class OccurrenceInput:
    description: str
    incident_id: int
    occurrence_date: datetime
    location_id: Optional[int] = None
    mrn: Optional[str] = None
    is_patient_involve: bool = False
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


# ---------- helpers ----------


def _status(db: Session, name: str) -> OccurrenceStatus:
    st = db.query(OccurrenceStatus).filter(
        OccurrenceStatus.name == name).first()
    if not st:
        raise OccurrenceError(f"Occurrence status {name} is not configured",
                              500)
    return st


def _set_status(db: Session, occ: Occurrence, name: str) -> None:
    occ.status = _status(db, name)


def _check_mrn(mrn: Optional[str]) -> Optional[str]:
    mrn = (mrn or "").strip()
    if not mrn:
        return None
    if len(mrn) != MRN_LENGTH:
        raise OccurrenceError(f"MRN must be {MRN_LENGTH} characters", 422)
    return mrn


def _check_refs(db: Session, *, incident_id: int,
                location_id: Optional[int]) -> None:
    if not db.get(Incident, incident_id):
        raise OccurrenceError("Incident not found", 404)
    if location_id is not None and not db.get(OccurrenceLocation,
                                              location_id):
        raise OccurrenceError("Location not found", 404)


def with_contact_block(description: str,
                       email: Optional[str] = None,
                       phone: Optional[str] = None) -> str:
    """Append reporter contact details to the description."""
    if not email and not phone:
        return description
    out = description + "\n\nContact Information:"
    if email:
        out += f"\nEmail: {email}"
    if phone:
        out += f"\nPhone: {phone}"
    return out


def _snapshot(occ: Occurrence) -> Dict[str, Any]:
    return {
        "occurrence_no": occ.occurrence_no,
        "mrn": occ.mrn,
        "incident_id": occ.incident_id,
        "location_id": occ.location_id,
        "status": occ.status.name if occ.status else None,
        "occurrence_date":
        occ.occurrence_date.isoformat() if occ.occurrence_date else None,
    }


def _detail_q(db: Session):
    return db.query(Occurrence).options(
        joinedload(Occurrence.status),
        joinedload(Occurrence.location),
        joinedload(Occurrence.incident).joinedload(Incident.severity),
        joinedload(Occurrence.created_by),
        joinedload(Occurrence.updated_by),
        selectinload(Occurrence.assignments).joinedload(
            OccurrenceAssignment.department),
    )


# ---------- reads ----------


def get_occurrence(db: Session, occurrence_id: int) -> Occurrence:
    occ = _detail_q(db).filter(Occurrence.id == occurrence_id).first()
    if not occ:
        raise OccurrenceError("Occurrence not found", 404)
    return occ


def get_occurrence_by_no(db: Session, occurrence_no: str) -> Occurrence:
    occ = _detail_q(db).filter(
        Occurrence.occurrence_no == occurrence_no).first()
    if not occ:
        raise OccurrenceError("Occurrence not found", 404)
    return occ


def search_occurrences(
    db: Session,
    filters: OccurrenceFilters,
    *,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[Occurrence], int]:
    q = db.query(Occurrence)

    if filters.search:
        like = f"%{filters.search.strip()}%"
        q = q.filter(
            or_(
                Occurrence.occurrence_no.ilike(like),
                Occurrence.description.ilike(like),
                Occurrence.mrn.ilike(like),
            ))
    if filters.status:
        q = q.join(Occurrence.status).filter(
            OccurrenceStatus.name == filters.status)
    if filters.severity_id:
        q = q.join(Occurrence.incident).filter(
            Incident.severity_id == filters.severity_id)
    if filters.location_id:
        q = q.filter(Occurrence.location_id == filters.location_id)
    if filters.date_from:
        q = q.filter(
            Occurrence.occurrence_date >= to_naive_utc(filters.date_from))
    if filters.date_to:
        q = q.filter(
            Occurrence.occurrence_date <= to_naive_utc(filters.date_to))
    if filters.mrn:
        q = q.filter(Occurrence.mrn == filters.mrn.strip())

    if filters.department_id:
        q = q.filter(
            Occurrence.assignments.any(
                OccurrenceAssignment.department_id == filters.department_id))
    if filters.visible_department_id or filters.visible_user_id:
        conds = []
        if filters.visible_department_id:
            conds.append(
                Occurrence.assignments.any(
                    OccurrenceAssignment.department_id ==
                    filters.visible_department_id))
        if filters.visible_user_id:
            conds.append(Occurrence.created_by_id == filters.visible_user_id)
        q = q.filter(or_(*conds))

    total = q.count()

    page = max(page, 1)
    page_size = min(max(page_size, 1), 200)
    items = (q.options(
        joinedload(Occurrence.status),
        joinedload(Occurrence.location),
        joinedload(Occurrence.incident).joinedload(Incident.severity),
        selectinload(Occurrence.assignments).joinedload(
            OccurrenceAssignment.department),
    ).order_by(Occurrence.created_at.desc(), Occurrence.id.desc()).offset(
        (page - 1) * page_size).limit(page_size).all())
    return items, total


def visibility_filters(user: User,
                       filters: OccurrenceFilters) -> OccurrenceFilters:
    """
    Restrict a listing to what the user may see. Global roles are untouched;
    everyone else sees their department's referrals and their own reports.
    """
    if rbac.sees_all_occurrences(user):
        return filters
    filters.visible_department_id = user.department_id
    filters.visible_user_id = user.id
    return filters


# ---------- writes ----------


def create_occurrence(db: Session, data: OccurrenceInput,
                      user: Optional[User]) -> Occurrence:
    """
    Authenticated or anonymous (user=None) report. Starts OPEN.
    """
    description = (data.description or "").strip()
    if len(description) < MIN_DESCRIPTION:
        raise OccurrenceError(
            f"Description must be at least {MIN_DESCRIPTION} characters", 422)
    if data.occurrence_date is None:
        raise OccurrenceError("Occurrence date and time is required", 422)
    mrn = _check_mrn(data.mrn)
    _check_refs(db, incident_id=data.incident_id, location_id=data.location_id)

    occ = Occurrence(
        occurrence_no=next_occurrence_no(db),
        mrn=mrn,
        is_patient_involve=bool(data.is_patient_involve),
        description=with_contact_block(description, data.contact_email,
                                       data.contact_phone),
        occurrence_date=to_naive_utc(data.occurrence_date),
        location_id=data.location_id,
        incident_id=data.incident_id,
        status=_status(db, STATUS_OPEN),
        created_by_id=user.id if user else None,
    )
    db.add(occ)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Occurrence number collision on create")
        raise OccurrenceError(
            "Occurrence number already taken, please submit again", 409)
    db.refresh(occ)

    logger.info("Occurrence %s created by user=%s", occ.occurrence_no,
                user.id if user else "anonymous")
    log_audit(db,
              user_id=user.id if user else None,
              action="CREATE",
              table_name="occurrences",
              record_id=occ.id,
              new_values=_snapshot(occ))
    notifications.safe_notify(notifications.notify_occurrence_created, db,
                              occ)
    return get_occurrence(db, occ.id)


def update_occurrence(db: Session, occ: Occurrence, data: OccurrenceInput,
                      user: User) -> Occurrence:
    """
    Edit the report. The status goes back to OPEN.
    """
    description = (data.description or "").strip()
    if len(description) < MIN_DESCRIPTION:
        raise OccurrenceError(
            f"Description must be at least {MIN_DESCRIPTION} characters", 422)
    mrn = _check_mrn(data.mrn)
    if mrn:
        clash = db.query(Occurrence.id).filter(Occurrence.mrn == mrn,
                                               Occurrence.id != occ.id).first()
        if clash:
            raise OccurrenceError("Occurrence MRN already in use", 409)
    _check_refs(db, incident_id=data.incident_id, location_id=data.location_id)

    old = _snapshot(occ)
    occ.mrn = mrn
    occ.is_patient_involve = bool(data.is_patient_involve)
    occ.description = description
    occ.location_id = data.location_id
    occ.incident_id = data.incident_id
    if data.occurrence_date is not None:
        occ.occurrence_date = to_naive_utc(data.occurrence_date)
    occ.updated_by_id = user.id
    _set_status(db, occ, STATUS_OPEN)
    db.commit()

    log_audit(db,
              user_id=user.id,
              action="UPDATE",
              table_name="occurrences",
              record_id=occ.id,
              old_values=old,
              new_values=_snapshot(occ))
    return get_occurrence(db, occ.id)


def delete_occurrence(db: Session, occ: Occurrence, user: User) -> None:
    """Tokens, assignments, messages and the occurrence go in one commit."""
    occ_id = occ.id
    old = _snapshot(occ)

    assignment_ids = [
        a_id for (a_id, ) in db.query(OccurrenceAssignment.id).filter(
            OccurrenceAssignment.occurrence_id == occ_id)
    ]
    if assignment_ids:
        db.query(FeedbackToken).filter(
            FeedbackToken.assignment_id.in_(assignment_ids)).delete(
                synchronize_session=False)
    db.query(OccurrenceAssignment).filter(
        OccurrenceAssignment.occurrence_id == occ_id).delete(
            synchronize_session=False)
    db.query(OccurrenceMessage).filter(
        OccurrenceMessage.occurrence_id == occ_id).delete(
            synchronize_session=False)
    db.query(Occurrence).filter(Occurrence.id == occ_id).delete(
        synchronize_session=False)
    db.commit()
    db.expire_all()

    logger.info("Occurrence %s deleted by user=%s", old["occurrence_no"],
                user.id)
    log_audit(db,
              user_id=user.id,
              action="DELETE",
              table_name="occurrences",
              record_id=occ_id,
              old_values=old)


def refer_occurrences(
    db: Session,
    *,
    occurrence_ids: List[int],
    department_ids: List[int],
    message: Optional[str],
    user: User,
) -> List[int]:
    """
    Refer one or more occurrences to departments. Existing (occurrence,
    department) pairs are re-opened with the new message.
    Returns the assignment ids touched.
    """
    if not occurrence_ids:
        raise OccurrenceError("At least one occurrence must be selected", 422)
    if not department_ids:
        raise OccurrenceError("At least one department must be selected", 422)

    dept_ids = list(dict.fromkeys(department_ids))
    found = db.query(Department.id).filter(Department.id.in_(dept_ids)).count()
    if found != len(dept_ids):
        raise OccurrenceError("Department not found", 404)

    occs = []
    for oid in dict.fromkeys(occurrence_ids):
        occs.append(get_occurrence(db, oid))

    now = utcnow()
    assigned = _status(db, STATUS_ASSIGNED)
    touched: List[OccurrenceAssignment] = []

    for occ in occs:
        occ.status = assigned
        occ.assigned_by_quality_at = now
        occ.updated_by_id = user.id
        existing = {a.department_id: a for a in occ.assignments}
        for dept_id in dept_ids:
            a = existing.get(dept_id)
            if a is None:
                a = OccurrenceAssignment(occurrence=occ,
                                         department_id=dept_id,
                                         assigned_at=now)
                db.add(a)
            a.message = message
            a.completed_at = None
            touched.append(a)

    db.commit()
    ids = [a.id for a in touched]

    for occ in occs:
        logger.info("Occurrence %s referred to departments %s",
                    occ.occurrence_no, dept_ids)
        log_audit(db,
                  user_id=user.id,
                  action="REFER",
                  table_name="occurrences",
                  record_id=occ.id,
                  new_values={
                      "department_ids": dept_ids,
                      "message": message
                  })
        notifications.safe_notify(notifications.notify_occurrence_referral,
                                  db, occ, dept_ids, message)
    return ids


def _answer_status_from_assignments(occ: Occurrence) -> Optional[str]:
    if not occ.assignments:
        return None
    done = sum(1 for a in occ.assignments if a.is_completed)
    if done == len(occ.assignments):
        return STATUS_ANSWERED
    return STATUS_ANSWERED_PARTIALLY


def submit_action(
    db: Session,
    *,
    occ: Occurrence,
    user: User,
    root_cause: str,
    action_plan: str,
) -> OccurrenceAssignment:
    """
    Department response: root cause + action plan on the caller's
    department assignment.
    """
    root_cause = (root_cause or "").strip()
    action_plan = (action_plan or "").strip()
    if len(root_cause) < MIN_ROOT_CAUSE:
        raise OccurrenceError(
            f"Root cause must be at least {MIN_ROOT_CAUSE} characters", 422)
    if len(action_plan) < MIN_ACTION_PLAN:
        raise OccurrenceError(
            f"Action plan must be at least {MIN_ACTION_PLAN} characters", 422)
    if not user.department_id:
        raise OccurrenceError("User not assigned to a department", 403)
    if occ.status and occ.status.name == STATUS_CLOSED:
        raise OccurrenceError("Occurrence is closed", 409)

    assignment = next(
        (a for a in occ.assignments if a.department_id == user.department_id),
        None)
    if assignment is None:
        raise OccurrenceError("No assignment found for this department", 404)

    assignment.root_cause = root_cause
    assignment.action_plan = action_plan
    assignment.completed_at = utcnow()
    db.flush()

    _set_status(db, occ, _answer_status_from_assignments(occ))
    occ.updated_by_id = user.id
    db.commit()

    dept_name = assignment.department.name
    logger.info("Action submitted on %s by department %s (status %s)",
                occ.occurrence_no, dept_name, occ.status.name)
    log_audit(db,
              user_id=user.id,
              action="ACTION",
              table_name="occurrence_assignments",
              record_id=assignment.id,
              new_values={
                  "root_cause": root_cause,
                  "action_plan": action_plan
              })
    notifications.safe_notify(notifications.notify_action_completed, db, occ,
                              dept_name, root_cause)
    return assignment


def resolve_occurrence(db: Session, occ: Occurrence, user: User) -> Occurrence:
    old = _snapshot(occ)
    _set_status(db, occ, STATUS_CLOSED)
    occ.closed_by_quality_at = utcnow()
    occ.updated_by_id = user.id
    db.commit()

    logger.info("Occurrence %s closed by user=%s", occ.occurrence_no, user.id)
    log_audit(db,
              user_id=user.id,
              action="RESOLVE",
              table_name="occurrences",
              record_id=occ.id,
              old_values=old,
              new_values=_snapshot(occ))
    notifications.safe_notify(notifications.notify_occurrence_resolved, db,
                              occ, user)
    return get_occurrence(db, occ.id)


def _answer_status_from_messages(db: Session,
                                 occ: Occurrence) -> Optional[str]:
    assigned = {a.department_id for a in occ.assignments}
    if not assigned:
        return None
    answered = {
        dept_id
        for (dept_id, ) in db.query(User.department_id).join(
            OccurrenceMessage, OccurrenceMessage.sender_id == User.id).filter(
                OccurrenceMessage.occurrence_id == occ.id,
                User.department_id.in_(assigned),
            ).distinct()
    }
    if not answered:
        return None
    if answered >= assigned:
        return STATUS_ANSWERED
    return STATUS_ANSWERED_PARTIALLY


def send_message(db: Session, occ: Occurrence, user: User,
                 message: str) -> OccurrenceMessage:
    """
    Post to the occurrence's group thread, then recompute the status from
    which assigned departments have spoken.
    """
    message = (message or "").strip()
    if not message:
        raise OccurrenceError("Message cannot be empty", 422)
    if occ.status and occ.status.name == STATUS_CLOSED:
        raise OccurrenceError("Occurrence is closed", 409)

    msg = OccurrenceMessage(occurrence_id=occ.id,
                            sender_id=user.id,
                            recipient_department_id=None,
                            message=message)
    db.add(msg)
    db.flush()

    new_status = _answer_status_from_messages(db, occ)
    if new_status:
        _set_status(db, occ, new_status)
    db.commit()
    db.refresh(msg)

    notifications.safe_notify(notifications.notify_occurrence_message, db, occ,
                              user, message)
    return msg


def list_messages(db: Session, occ: Occurrence) -> List[OccurrenceMessage]:
    return (db.query(OccurrenceMessage).options(
        joinedload(OccurrenceMessage.sender).joinedload(User.department)).filter(
            OccurrenceMessage.occurrence_id == occ.id,
            OccurrenceMessage.recipient_department_id.is_(None),
        ).order_by(OccurrenceMessage.created_at,
                   OccurrenceMessage.id).all())


def statuses(db: Session) -> List[OccurrenceStatus]:
    return db.query(OccurrenceStatus).order_by(OccurrenceStatus.id).all()


def locations(db: Session) -> List[OccurrenceLocation]:
    return db.query(OccurrenceLocation).order_by(OccurrenceLocation.name).all()

