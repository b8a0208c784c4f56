# ova/api/routes_feedback.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_occurrence_access, require_perm
from ova.models.occurrence import OccurrenceAssignment
from ova.models.user import User
from ova.schemas.feedback import (
    FeedbackSubmitIn,
    FeedbackTokenOut,
    TokenCheckOut,
    TokenCreateIn,
    TokenCreateOut,
)
from ova.services import feedback_tokens as svc

router = APIRouter()


def _assignment_for(db: Session, assignment_id: int,
                    me: User) -> OccurrenceAssignment:
    a = db.get(OccurrenceAssignment, assignment_id)
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    require_occurrence_access(me, a.occurrence)
    return a


@router.post("/tokens", response_model=TokenCreateOut, status_code=201)
def create_token(payload: TokenCreateIn,
                 db: Session = Depends(get_db),
                 me: User = Depends(current_user)):
    require_perm(me, "view:feedback-share")
    _assignment_for(db, payload.assignment_id, me)
    try:
        row = svc.generate_token(db,
                                 assignment_id=payload.assignment_id,
                                 shared_by_id=me.id)
    except svc.FeedbackTokenError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    emailed = svc.share_by_email(row, payload.email) if payload.email else False
    return {
        "token": row.token,
        "link": svc.feedback_link(row.token),
        "expires_at": row.expires_at,
        "emailed": emailed,
    }


@router.get("/assignments/{assignment_id}",
            response_model=List[FeedbackTokenOut])
def assignment_tokens(assignment_id: int,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "view:feedback-share")
    _assignment_for(db, assignment_id, me)
    return svc.tokens_for_assignment(db, assignment_id)


@router.post("/submit")
def submit(payload: FeedbackSubmitIn, db: Session = Depends(get_db)):
    """Public. 400 carries the refusal reason in error.code."""
    try:
        row = svc.submit_feedback(db,
                                  token=payload.token,
                                  message=payload.message)
    except svc.FeedbackTokenError as e:
        raise HTTPException(status_code=e.status_code,
                            detail={
                                "msg": str(e),
                                "code": e.reason
                            })
    return {
        "message": "Feedback submitted",
        "responded_at": row.responded_at
    }


@router.get("/{token}", response_model=TokenCheckOut)
def check_token(token: str, db: Session = Depends(get_db)):
    check = svc.validate_token(db, token)
    out = {
        "valid": check.valid,
        "reason": check.reason,
        "message": check.message,
    }
    if not check.valid:
        return out

    row = check.token
    a = row.assignment
    occ = a.occurrence
    out["expires_at"] = row.expires_at
    out["occurrence"] = {
        "occurrence_no": occ.occurrence_no,
        "description": occ.description,
        "occurrence_date": occ.occurrence_date,
        "department_name": a.department.name,
        "referral_message": a.message,
        "shared_by": row.shared_by.name if row.shared_by else None,
    }
    return out
