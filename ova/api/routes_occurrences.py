# ova/api/routes_occurrences.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user, optional_user
from ova.core.rbac import require_occurrence_access, require_perm
from ova.models.user import User
from ova.schemas.occurrence import (
    ActionIn,
    AssignmentOut,
    MessageIn,
    MessageOut,
    OccurrenceIn,
    OccurrenceOut,
    OccurrencePage,
    ReferIn,
    ReferOut,
)
from ova.services import occurrences as svc

router = APIRouter()


def _fail(e: svc.OccurrenceError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


def _input(payload: OccurrenceIn) -> svc.OccurrenceInput:
    return svc.OccurrenceInput(
        description=payload.description,
        incident_id=payload.incident_id,
        occurrence_date=payload.occurrence_date,
        location_id=payload.location_id,
        mrn=payload.mrn,
        is_patient_involve=payload.is_patient_involve,
        contact_email=payload.contact_email,
        contact_phone=payload.contact_phone,
    )


def _load(db: Session, occurrence_id: int, me: User):
    try:
        occ = svc.get_occurrence(db, occurrence_id)
    except svc.OccurrenceError as e:
        _fail(e)
    require_occurrence_access(me, occ)
    return occ


# ---------- list / read ----------


@router.get("/", response_model=OccurrencePage)
def list_occurrences(
        search: Optional[str] = None,
        status: Optional[str] = None,
        severity_id: Optional[int] = None,
        location_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        mrn: Optional[str] = None,
        department_id: Optional[int] = None,
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=200),
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    require_perm(me, "view:occurrence")
    filters = svc.visibility_filters(
        me,
        svc.OccurrenceFilters(
            search=search,
            status=status,
            severity_id=severity_id,
            location_id=location_id,
            date_from=date_from,
            date_to=date_to,
            mrn=mrn,
            department_id=department_id,
        ))
    items, total = svc.search_occurrences(db,
                                          filters,
                                          page=page,
                                          page_size=page_size)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size
    }


@router.get("/by-no/{occurrence_no}", response_model=OccurrenceOut)
def get_by_number(occurrence_no: str,
                  db: Session = Depends(get_db),
                  me: User = Depends(current_user)):
    require_perm(me, "view:occurrence")
    try:
        occ = svc.get_occurrence_by_no(db, occurrence_no)
    except svc.OccurrenceError as e:
        _fail(e)
    require_occurrence_access(me, occ)
    return occ


@router.get("/{occurrence_id}", response_model=OccurrenceOut)
def get_occurrence(occurrence_id: int,
                   db: Session = Depends(get_db),
                   me: User = Depends(current_user)):
    require_perm(me, "view:occurrence")
    return _load(db, occurrence_id, me)


# ---------- create / update / delete ----------


@router.post("/", response_model=OccurrenceOut, status_code=201)
def create_occurrence(payload: OccurrenceIn,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "create:occurrence")
    try:
        return svc.create_occurrence(db, _input(payload), me)
    except svc.OccurrenceError as e:
        _fail(e)


@router.post("/anonymous", response_model=OccurrenceOut, status_code=201)
def create_anonymous_occurrence(
        payload: OccurrenceIn,
        db: Session = Depends(get_db),
        me: Optional[User] = Depends(optional_user),
):
    """
    Public report form. A bearer token, when sent, only records the reporter;
    no permission is required.
    """
    try:
        return svc.create_occurrence(db, _input(payload), me)
    except svc.OccurrenceError as e:
        _fail(e)


@router.put("/{occurrence_id}", response_model=OccurrenceOut)
def update_occurrence(occurrence_id: int,
                      payload: OccurrenceIn,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "edit:occurrence")
    occ = _load(db, occurrence_id, me)
    try:
        return svc.update_occurrence(db, occ, _input(payload), me)
    except svc.OccurrenceError as e:
        _fail(e)


@router.delete("/{occurrence_id}")
def delete_occurrence(occurrence_id: int,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "delete:occurrence")
    occ = _load(db, occurrence_id, me)
    svc.delete_occurrence(db, occ, me)
    return {"message": "Deleted"}


# ---------- workflow ----------


@router.post("/refer", response_model=ReferOut)
def refer(payload: ReferIn,
          db: Session = Depends(get_db),
          me: User = Depends(current_user)):
    require_perm(me, "refer:occurrence")
    try:
        ids = svc.refer_occurrences(db,
                                    occurrence_ids=payload.occurrence_ids,
                                    department_ids=payload.department_ids,
                                    message=payload.message,
                                    user=me)
    except svc.OccurrenceError as e:
        _fail(e)
    return {"assignment_ids": ids}


@router.post("/{occurrence_id}/action", response_model=AssignmentOut)
def submit_action(occurrence_id: int,
                  payload: ActionIn,
                  db: Session = Depends(get_db),
                  me: User = Depends(current_user)):
    require_perm(me, "action:occurrence")
    occ = _load(db, occurrence_id, me)
    try:
        return svc.submit_action(db,
                                 occ=occ,
                                 user=me,
                                 root_cause=payload.root_cause,
                                 action_plan=payload.action_plan)
    except svc.OccurrenceError as e:
        _fail(e)


@router.post("/{occurrence_id}/resolve", response_model=OccurrenceOut)
def resolve(occurrence_id: int,
            db: Session = Depends(get_db),
            me: User = Depends(current_user)):
    require_perm(me, "resolve:occurrence")
    occ = _load(db, occurrence_id, me)
    try:
        return svc.resolve_occurrence(db, occ, me)
    except svc.OccurrenceError as e:
        _fail(e)


@router.get("/{occurrence_id}/messages", response_model=List[MessageOut])
def list_messages(occurrence_id: int,
                  db: Session = Depends(get_db),
                  me: User = Depends(current_user)):
    occ = _load(db, occurrence_id, me)
    return svc.list_messages(db, occ)


@router.post("/{occurrence_id}/messages",
             response_model=MessageOut,
             status_code=201)
def post_message(occurrence_id: int,
                 payload: MessageIn,
                 db: Session = Depends(get_db),
                 me: User = Depends(current_user)):
    occ = _load(db, occurrence_id, me)
    try:
        return svc.send_message(db, occ, me, payload.message)
    except svc.OccurrenceError as e:
        _fail(e)
