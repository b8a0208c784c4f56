from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_perm
from ova.models.user import User
from ova.schemas.incident import (
    IncidentCreate,
    IncidentNode,
    IncidentOut,
    IncidentUpdate,
    IncidentWithChildrenOut,
    SeverityOut,
)
from ova.services import incidents as svc
from ova.services.audit_logger import log_audit

router = APIRouter()


def _fail(e: svc.IncidentError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


def _snapshot(inc) -> dict:
    return {
        "name": inc.name,
        "severity_id": inc.severity_id,
        "parent_id": inc.parent_id,
    }


# ---------- severities ----------


@router.get("/severities", response_model=List[SeverityOut])
def list_severities(db: Session = Depends(get_db),
                    me: User = Depends(current_user)):
    return svc.severities(db)


@router.get("/severities/{severity_id}/ascendants",
            response_model=List[SeverityOut])
def severity_ascendants(severity_id: int,
                        db: Session = Depends(get_db),
                        me: User = Depends(current_user)):
    """The severity itself and every one ranked above it."""
    return svc.severities_at_or_above(db, severity_id)


# ---------- taxonomy reads ----------


@router.get("/", response_model=List[IncidentWithChildrenOut])
def list_top_level(db: Session = Depends(get_db)):
    # public: the anonymous report form needs the taxonomy
    return svc.top_level_incidents(db)


@router.get("/hierarchy", response_model=List[IncidentNode])
def hierarchy(db: Session = Depends(get_db)):
    return svc.incident_hierarchy(db)


@router.get("/{incident_id}", response_model=IncidentOut)
def get_incident(incident_id: int,
                 db: Session = Depends(get_db),
                 me: User = Depends(current_user)):
    try:
        return svc.get_incident(db, incident_id)
    except svc.IncidentError as e:
        _fail(e)


@router.get("/{incident_id}/children", response_model=List[IncidentOut])
def children(incident_id: int, db: Session = Depends(get_db)):
    return svc.sub_incidents(db, incident_id)


@router.get("/{incident_id}/top-level", response_model=Optional[IncidentOut])
def top_level(incident_id: int,
              db: Session = Depends(get_db),
              me: User = Depends(current_user)):
    inc = svc.top_level_incident(db, incident_id)
    if inc is None:
        raise HTTPException(status_code=404, detail="Incident not found")
    return inc


# ---------- writes ----------


@router.post("/", response_model=IncidentOut, status_code=201)
def create_incident(payload: IncidentCreate,
                    db: Session = Depends(get_db),
                    me: User = Depends(current_user)):
    require_perm(me, "manage:settings")
    try:
        inc = svc.create_incident(db,
                                  name=payload.name,
                                  severity_id=payload.severity_id,
                                  parent_id=payload.parent_id)
    except svc.IncidentError as e:
        _fail(e)
    log_audit(db,
              user_id=me.id,
              action="CREATE",
              table_name="incidents",
              record_id=inc.id,
              new_values=_snapshot(inc))
    return inc


@router.put("/{incident_id}", response_model=IncidentOut)
def update_incident(incident_id: int,
                    payload: IncidentUpdate,
                    db: Session = Depends(get_db),
                    me: User = Depends(current_user)):
    require_perm(me, "manage:settings")
    try:
        inc = svc.get_incident(db, incident_id)
        old = _snapshot(inc)
        inc = svc.update_incident(db, inc, payload.model_dump(exclude_unset=True))
    except svc.IncidentError as e:
        _fail(e)
    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="incidents",
              record_id=inc.id,
              old_values=old,
              new_values=_snapshot(inc))
    return inc


@router.delete("/{incident_id}")
def delete_incident(incident_id: int,
                    db: Session = Depends(get_db),
                    me: User = Depends(current_user)):
    require_perm(me, "manage:settings")
    try:
        inc = svc.get_incident(db, incident_id)
        old = _snapshot(inc)
        svc.delete_incident(db, inc)
    except svc.IncidentError as e:
        _fail(e)
    log_audit(db,
              user_id=me.id,
              action="DELETE",
              table_name="incidents",
              record_id=incident_id,
              old_values=old)
    return {"message": "Deleted"}
