# FILE: ova/services/feedback_tokens.py
"""
Feedback tokens: single-use, time-limited links that let someone outside
the system post one response against an assignment.

    issue  -> deletes other live tokens of the assignment, stores a new one
    check  -> invalid | expired | already-used | ok
    submit -> one conditional UPDATE flips `used` and stores the response
"""
from __future__ import annotations

import logging
import secrets
import smtplib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ova.core.config import settings
from ova.core.emailer import send_email
from ova.models.feedback import FeedbackToken
from ova.models.occurrence import OccurrenceAssignment
from ova.services import notifications
from ova.utils.timez import utcnow

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32

REASON_INVALID = "invalid"
REASON_EXPIRED = "expired"
REASON_USED = "already-used"

REASON_MESSAGES = {
    REASON_INVALID: "Invalid token",
    REASON_EXPIRED: "Token expired",
    REASON_USED: "Token already used",
}


class FeedbackTokenError(Exception):

    def __init__(self,
                 msg: str,
                 status_code: int = 400,
                 reason: Optional[str] = None):
        super().__init__(msg)
        self.status_code = status_code
        self.reason = reason


@dataclass
class TokenCheck:
    valid: bool
    reason: Optional[str] = None
    token: Optional[FeedbackToken] = None

    @property
    def message(self) -> Optional[str]:
        return REASON_MESSAGES.get(self.reason) if self.reason else None


def feedback_link(token: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}/feedback/{token}"


def _get_assignment(db: Session, assignment_id: int) -> OccurrenceAssignment:
    a = (db.query(OccurrenceAssignment).options(
        joinedload(OccurrenceAssignment.occurrence),
        joinedload(OccurrenceAssignment.department),
    ).filter(OccurrenceAssignment.id == assignment_id).first())
    if not a:
        raise FeedbackTokenError("Assignment not found", 404)
    return a


def generate_token(
    db: Session,
    *,
    assignment_id: int,
    shared_by_id: Optional[int],
    now: Optional[datetime] = None,
) -> FeedbackToken:
    """
    Issue a fresh token for the assignment. Any other unexpired, unused
    token of the same assignment is deleted first, so at most one is live.
    """
    now = now or utcnow()
    _get_assignment(db, assignment_id)

    dropped = (db.query(FeedbackToken).filter(
        FeedbackToken.assignment_id == assignment_id,
        FeedbackToken.used.is_(False),
        FeedbackToken.expires_at > now,
    ).delete(synchronize_session="fetch"))

    row = FeedbackToken(
        token=secrets.token_hex(TOKEN_BYTES),
        assignment_id=assignment_id,
        shared_by_id=shared_by_id,
        used=False,
        expires_at=now + timedelta(hours=settings.FEEDBACK_TOKEN_TTL_HOURS),
        created_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    logger.info(
        "Feedback token issued for assignment=%s by user=%s (replaced %d)",
        assignment_id, shared_by_id, dropped)
    return row


def validate_token(db: Session,
                   token: str,
                   now: Optional[datetime] = None) -> TokenCheck:
    """
    Checked in order: unknown -> expired -> already used.
    A valid result carries the token with its assignment, occurrence,
    department and issuer loaded.
    """
    now = now or utcnow()
    if not token:
        return TokenCheck(False, REASON_INVALID)

    row = (db.query(FeedbackToken).options(
        joinedload(FeedbackToken.assignment).joinedload(
            OccurrenceAssignment.occurrence),
        joinedload(FeedbackToken.assignment).joinedload(
            OccurrenceAssignment.department),
        joinedload(FeedbackToken.shared_by),
    ).filter(FeedbackToken.token == token).first())

    if row is None:
        return TokenCheck(False, REASON_INVALID)
    if now > row.expires_at:
        return TokenCheck(False, REASON_EXPIRED, row)
    if row.used:
        return TokenCheck(False, REASON_USED, row)
    return TokenCheck(True, None, row)


def submit_feedback(
    db: Session,
    *,
    token: str,
    message: str,
    now: Optional[datetime] = None,
) -> FeedbackToken:
    """
    Consume the token and store the response.

    The write is a single UPDATE guarded by `used = false`; if another
    submission got there first no row matches and this one is refused.
    """
    now = now or utcnow()
    message = (message or "").strip()
    if not message:
        raise FeedbackTokenError("Feedback message is required", 422)

    check = validate_token(db, token, now=now)
    if not check.valid:
        raise FeedbackTokenError(check.message, 400, reason=check.reason)

    row = check.token
    res = db.execute(
        update(FeedbackToken).where(
            FeedbackToken.id == row.id,
            FeedbackToken.used.is_(False),
        ).values(used=True, response_message=message, responded_at=now))

    if res.rowcount != 1:
        db.rollback()
        raise FeedbackTokenError(REASON_MESSAGES[REASON_USED],
                                 400,
                                 reason=REASON_USED)

    db.commit()
    db.refresh(row)
    logger.info("Feedback received for assignment=%s", row.assignment_id)

    notifications.safe_notify(notifications.notify_feedback_received, db, row)
    return row


def tokens_for_assignment(db: Session,
                          assignment_id: int) -> List[FeedbackToken]:
    return (db.query(FeedbackToken).filter(
        FeedbackToken.assignment_id == assignment_id).order_by(
            FeedbackToken.created_at.desc(), FeedbackToken.id.desc()).all())


def share_by_email(row: FeedbackToken, to_email: str) -> bool:
    """
    Mail the link to an external recipient. Returns whether it went out.
    """
    occ = row.assignment.occurrence
    dept = row.assignment.department
    link = feedback_link(row.token)
    subject = f"Feedback requested: {occ.occurrence_no}"
    body = (
        f"You have been asked to give feedback on occurrence "
        f"{occ.occurrence_no} for {dept.name}.\n\n"
        f"Open the link below to respond. It can be used once and expires "
        f"on {row.expires_at:%Y-%m-%d %H:%M} UTC.\n\n{link}\n")
    try:
        return send_email(to_email, subject, body)
    except (smtplib.SMTPException, OSError, RuntimeError):
        logger.warning("Could not email feedback link to %s", to_email,
                       exc_info=True)
        return False
