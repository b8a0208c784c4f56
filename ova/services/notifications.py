# FILE: ova/services/notifications.py
from __future__ import annotations

import logging
import smtplib
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ova.core.emailer import send_email
from ova.models.feedback import FeedbackToken
from ova.models.incident import Incident, Severity
from ova.models.notification import (
    Notification,
    NotificationChannel,
    NotificationPreference,
    NotificationType,
)
from ova.models.occurrence import Occurrence, STATUS_ANSWERED
from ova.models.role import Role
from ova.models.user import User
from ova.services.incidents import top_level_incident

logger = logging.getLogger(__name__)

CREATED_ROLES = ("QUALITY_ASSURANCE", "ADMIN", "QUALITY_MANAGER")
REFERRAL_ROLES = ("DEPARTMENT_MANAGER", )
QA_ROLE = "QUALITY_ASSURANCE"


# ---------- Preferences ----------


def enabled_preferences(user: User) -> List[NotificationPreference]:
    return [p for p in (user.notification_preferences or []) if p.enabled]


def wants_occurrence(user: User, *, top_incident_id: Optional[int],
                     severity_id: Optional[int]) -> bool:
    """
    Top-level incident or severity must be explicitly selected.
    Empty selections match nothing.
    """
    for pref in enabled_preferences(user):
        if top_incident_id and top_incident_id in {i.id for i in pref.incidents}:
            return True
        if severity_id and severity_id in {s.id for s in pref.severities}:
            return True
    return False


def _pick_channel(prefs: List[NotificationPreference]) -> NotificationChannel:
    channels = [NotificationChannel(p.channel) for p in prefs]
    if NotificationChannel.BOTH in channels:
        return NotificationChannel.BOTH
    return channels[0]


def _deliver_email(to_email: str, title: str, message: str) -> None:
    try:
        send_email(to_email, title, message)
    except (smtplib.SMTPException, OSError, RuntimeError):
        logger.warning("Notification email to %s failed", to_email,
                       exc_info=True)


def send_notification(
    db: Session,
    *,
    user: User,
    title: str,
    message: str,
    type: NotificationType,
    reference_ids: Optional[Iterable[int]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Optional[Notification]:
    """
    Store one in-app notification and deliver it on the user's channel.
    Users without an enabled preference get nothing.
    """
    prefs = enabled_preferences(user)
    if not prefs:
        return None

    channel = _pick_channel(prefs)
    n = Notification(
        user_id=user.id,
        title=title,
        message=message,
        type=type,
        channel=channel,
        reference_ids=list(reference_ids or []),
        meta=meta or {},
    )
    db.add(n)
    db.flush()

    if channel in (NotificationChannel.EMAIL, NotificationChannel.BOTH):
        to_email = next((p.email for p in prefs if p.email), None) or user.email
        if to_email:
            _deliver_email(to_email, title, message)

    if channel in (NotificationChannel.MOBILE, NotificationChannel.BOTH):
        mobile = next((p.mobile for p in prefs if p.mobile),
                      None) or user.mobile_no
        # no SMS gateway wired up
        logger.info("Mobile notification for user=%s mobile=%s: %s", user.id,
                    mobile, title)

    return n


def safe_notify(fn, db: Session, *args, **kwargs) -> None:
    """
    Run a notify_* trigger without letting it fail the caller's request.
    """
    try:
        fn(db, *args, **kwargs)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Notification trigger %s failed", fn.__name__)


# ---------- Recipient lookups ----------


def _users_q(db: Session):
    return db.query(User).options(
        selectinload(User.notification_preferences).selectinload(
            NotificationPreference.severities),
        selectinload(User.notification_preferences).selectinload(
            NotificationPreference.incidents),
        selectinload(User.department),
    ).filter(User.is_active.is_(True))


def _users_with_roles(db: Session, role_names: Iterable[str]) -> List[User]:
    return _users_q(db).join(User.role).filter(
        Role.name.in_(list(role_names))).all()


def _snippet(text: str, size: int = 100) -> str:
    return text[:size] + ("..." if len(text) > size else "")


def _occurrence_keys(db: Session, occ: Occurrence):
    top = top_level_incident(db, occ.incident_id)
    severity_id = occ.incident.severity_id if occ.incident else None
    return (top.id if top else None), severity_id


# ---------- Triggers ----------


def notify_occurrence_created(db: Session, occ: Occurrence) -> int:
    top_id, severity_id = _occurrence_keys(db, occ)
    sent = 0
    for user in _users_with_roles(db, CREATED_ROLES):
        if not wants_occurrence(
                user, top_incident_id=top_id, severity_id=severity_id):
            continue
        if send_notification(
                db,
                user=user,
                title=f"New Occurrence: {occ.occurrence_no}",
                message=
                f"A new occurrence has been created: {occ.occurrence_no}",
                type=NotificationType.OCCURRENCE_CREATED,
                reference_ids=[occ.id],
                meta={
                    "occurrence_no": occ.occurrence_no,
                    "severity_level": (occ.incident.severity.level
                                       if occ.incident else None),
                },
        ):
            sent += 1
    logger.info("Occurrence %s created: %d notification(s)",
                occ.occurrence_no, sent)
    return sent


def notify_occurrence_referral(db: Session,
                               occ: Occurrence,
                               department_ids: List[int],
                               message: Optional[str] = None) -> int:
    top_id, severity_id = _occurrence_keys(db, occ)
    users = [
        u for u in _users_with_roles(db, REFERRAL_ROLES)
        if u.department_id in set(department_ids)
    ]
    sent = 0
    for user in users:
        if not wants_occurrence(
                user, top_incident_id=top_id, severity_id=severity_id):
            continue
        if send_notification(
                db,
                user=user,
                title=f"Occurrence Referral: {occ.occurrence_no}",
                message=("An occurrence has been referred to your department: "
                         f"{occ.occurrence_no}"),
                type=NotificationType.REFERRAL,
                reference_ids=[occ.id],
                meta={
                    "occurrence_no": occ.occurrence_no,
                    "department_id": user.department_id,
                    "department_name": (user.department.name
                                        if user.department else None),
                    "message": message,
                },
        ):
            sent += 1
    logger.info("Occurrence %s referred: %d notification(s)",
                occ.occurrence_no, sent)
    return sent


def notify_action_completed(db: Session, occ: Occurrence, department_name: str,
                            root_cause: str) -> int:
    sent = 0
    for user in _users_with_roles(db, (QA_ROLE, )):
        if send_notification(
                db,
                user=user,
                title=f"Action submitted on {occ.occurrence_no}",
                message=(f"{department_name} submitted root cause and action "
                         f"plan for occurrence {occ.occurrence_no}"),
                type=NotificationType.OCCURRENCE_UPDATED,
                reference_ids=[occ.id],
                meta={
                    "occurrence_no": occ.occurrence_no,
                    "department_name": department_name,
                    "root_cause": _snippet(root_cause),
                },
        ):
            sent += 1
    return sent


def notify_occurrence_message(db: Session, occ: Occurrence, sender: User,
                              message: str) -> int:
    """
    Reporter, users of the other assigned departments, and QA once the
    occurrence is ANSWERED. The sender never hears about their own message.
    """
    sender_dept = sender.department.name if sender.department else None
    title = f"New message on {occ.occurrence_no}"
    meta = {
        "occurrence_no": occ.occurrence_no,
        "message_snippet": _snippet(message),
        "sender_name": sender.name,
        "sender_department": sender_dept,
    }

    recipients: Dict[int, User] = {}

    if occ.created_by_id and occ.created_by_id != sender.id:
        reporter = _users_q(db).filter(User.id == occ.created_by_id).first()
        if reporter:
            recipients[reporter.id] = reporter

    if occ.status and occ.status.name == STATUS_ANSWERED:
        for u in _users_with_roles(db, (QA_ROLE, )):
            if u.id != sender.id:
                recipients.setdefault(u.id, u)

    other_depts = {
        a.department_id
        for a in occ.assignments if a.department_id != sender.department_id
    }
    if other_depts:
        for u in _users_q(db).filter(User.department_id.in_(other_depts)):
            if u.id != sender.id:
                recipients.setdefault(u.id, u)

    sent = 0
    for user in recipients.values():
        text = (f"{sender.name or 'A user'} from "
                f"{sender_dept or 'another department'} has sent a message on "
                f"occurrence {occ.occurrence_no}")
        if send_notification(db,
                             user=user,
                             title=title,
                             message=text,
                             type=NotificationType.OCCURRENCE_UPDATED,
                             reference_ids=[occ.id],
                             meta=meta):
            sent += 1
    return sent


def notify_occurrence_resolved(db: Session, occ: Occurrence,
                               resolver: Optional[User]) -> int:
    resolved_by = (resolver.name if resolver else None) or "A user"
    sent = 0

    if occ.created_by_id:
        reporter = _users_q(db).filter(User.id == occ.created_by_id).first()
        if reporter and send_notification(
                db,
                user=reporter,
                title=f"Occurrence {occ.occurrence_no} Resolved",
                message=(f"Your reported occurrence {occ.occurrence_no} has "
                         "been resolved and closed"),
                type=NotificationType.OCCURRENCE_UPDATED,
                reference_ids=[occ.id],
                meta={
                    "occurrence_no": occ.occurrence_no,
                    "resolved_by": resolved_by
                },
        ):
            sent += 1

    for a in occ.assignments:
        for user in _users_q(db).filter(User.department_id == a.department_id):
            if user.id == occ.created_by_id:
                continue
            if send_notification(
                    db,
                    user=user,
                    title=f"Occurrence {occ.occurrence_no} Resolved",
                    message=(f"Occurrence {occ.occurrence_no} that was assigned "
                             "to your department has been resolved and closed"),
                    type=NotificationType.OCCURRENCE_UPDATED,
                    reference_ids=[occ.id],
                    meta={
                        "occurrence_no": occ.occurrence_no,
                        "resolved_by": resolved_by,
                        "department_name": a.department.name,
                    },
            ):
                sent += 1
    return sent


def notify_feedback_received(db: Session, token: FeedbackToken) -> int:
    if not token.shared_by_id:
        return 0
    issuer = _users_q(db).filter(User.id == token.shared_by_id).first()
    if not issuer:
        return 0
    assignment = token.assignment
    occ = assignment.occurrence
    n = send_notification(
        db,
        user=issuer,
        title=f"Feedback received on {occ.occurrence_no}",
        message=(f"External feedback was submitted for "
                 f"{assignment.department.name} on occurrence "
                 f"{occ.occurrence_no}"),
        type=NotificationType.FEEDBACK,
        reference_ids=[occ.id],
        meta={
            "occurrence_no": occ.occurrence_no,
            "assignment_id": assignment.id,
            "message_snippet": _snippet(token.response_message or ""),
        },
    )
    return 1 if n else 0


# ---------- User operations ----------


def unread_notifications(db: Session, user_id: int,
                         limit: int = 10) -> List[Notification]:
    return (db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False)).order_by(
            Notification.created_at.desc(),
            Notification.id.desc()).limit(limit).all())


def unread_count(db: Session, user_id: int) -> int:
    return (db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False)).count())


def mark_read(db: Session, user_id: int, notification_id: int) -> bool:
    """Only the owner's notification is touched."""
    res = db.execute(
        update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).values(read=True))
    db.commit()
    return res.rowcount == 1


def mark_all_read(db: Session, user_id: int) -> int:
    res = db.execute(
        update(Notification).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        ).values(read=True))
    db.commit()
    return res.rowcount


def get_preferences(db: Session, user_id: int) -> List[NotificationPreference]:
    return (db.query(NotificationPreference).options(
        selectinload(NotificationPreference.severities),
        selectinload(NotificationPreference.incidents),
    ).filter(NotificationPreference.user_id == user_id).order_by(
        NotificationPreference.id).all())


def save_preference(
    db: Session,
    user: User,
    *,
    enabled: bool,
    channel: NotificationChannel,
    email: Optional[str] = None,
    mobile: Optional[str] = None,
    severity_ids: Optional[List[int]] = None,
    incident_ids: Optional[List[int]] = None,
) -> NotificationPreference:
    """
    One preference row per user; saved in place.
    Only top-level incidents can be selected.
    """
    sev = []
    if severity_ids:
        sev = db.query(Severity).filter(Severity.id.in_(severity_ids)).all()
        if len(sev) != len(set(severity_ids)):
            raise ValueError("Unknown severity id")

    incs = []
    if incident_ids:
        incs = db.query(Incident).filter(Incident.id.in_(incident_ids)).all()
        if len(incs) != len(set(incident_ids)):
            raise ValueError("Unknown incident id")
        if any(i.parent_id is not None for i in incs):
            raise ValueError("Only top-level incidents can be selected")

    pref = (db.query(NotificationPreference).filter(
        NotificationPreference.user_id == user.id).order_by(
            NotificationPreference.id).first())
    if pref is None:
        pref = NotificationPreference(user_id=user.id)
        db.add(pref)

    pref.enabled = enabled
    pref.channel = channel
    pref.email = email or None
    pref.mobile = mobile or None
    pref.severities = sev
    pref.incidents = incs
    db.commit()
    db.refresh(pref)
    logger.info("Notification preference saved for user=%s", user.id)
    return pref
