from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_perm
from ova.models.department import Department
from ova.models.occurrence import OccurrenceAssignment
from ova.models.user import User
from ova.schemas.department import (
    DepartmentCreate,
    DepartmentDetailOut,
    DepartmentOut,
    DepartmentStatsOut,
)
from ova.schemas.occurrence import OccurrencePage
from ova.services.audit_logger import log_audit
from ova.services.dashboard_service import department_stats
from ova.services.occurrences import OccurrenceFilters, search_occurrences

router = APIRouter()


def _get_department(db: Session, dept_id: int) -> Department:
    d = db.get(Department, dept_id)
    if not d:
        raise HTTPException(status_code=404, detail="Department not found")
    return d


@router.get("/", response_model=list[DepartmentOut])
def list_departments(db: Session = Depends(get_db),
                     me: User = Depends(current_user)):
    require_perm(me, "manage:departments")
    return db.query(Department).order_by(Department.name).all()


@router.get("/{dept_id}", response_model=DepartmentDetailOut)
def get_department(dept_id: int,
                   db: Session = Depends(get_db),
                   me: User = Depends(current_user)):
    require_perm(me, "manage:departments")
    d = (db.query(Department).options(selectinload(Department.users)).filter(
        Department.id == dept_id).first())
    if not d:
        raise HTTPException(status_code=404, detail="Department not found")
    return d


@router.get("/{dept_id}/occurrences", response_model=OccurrencePage)
def department_occurrences(
        dept_id: int,
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=200),
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    require_perm(me, "manage:departments")
    _get_department(db, dept_id)
    items, total = search_occurrences(db,
                                      OccurrenceFilters(department_id=dept_id),
                                      page=page,
                                      page_size=page_size)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size
    }


@router.get("/{dept_id}/stats", response_model=DepartmentStatsOut)
def get_department_stats(dept_id: int,
                         db: Session = Depends(get_db),
                         me: User = Depends(current_user)):
    require_perm(me, "manage:departments")
    _get_department(db, dept_id)
    return department_stats(db, dept_id)


@router.post("/", response_model=DepartmentOut, status_code=201)
def create_department(payload: DepartmentCreate,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "manage:departments")
    name = payload.name.strip()
    if db.query(Department).filter(Department.name == name).first():
        raise HTTPException(status_code=409, detail="Department exists")
    d = Department(name=name, description=payload.description)
    db.add(d)
    db.commit()
    db.refresh(d)
    log_audit(db,
              user_id=me.id,
              action="CREATE",
              table_name="departments",
              record_id=d.id,
              new_values={"name": d.name})
    return d


@router.put("/{dept_id}", response_model=DepartmentOut)
def update_department(dept_id: int,
                      payload: DepartmentCreate,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "manage:departments")
    d = _get_department(db, dept_id)
    name = payload.name.strip()
    clash = db.query(Department.id).filter(Department.name == name,
                                           Department.id != dept_id).first()
    if clash:
        raise HTTPException(status_code=409, detail="Department exists")
    old = {"name": d.name, "description": d.description}
    d.name = name
    d.description = payload.description
    db.commit()
    db.refresh(d)
    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="departments",
              record_id=d.id,
              old_values=old,
              new_values={
                  "name": d.name,
                  "description": d.description
              })
    return d


@router.delete("/{dept_id}")
def delete_department(dept_id: int,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "manage:departments")
    d = _get_department(db, dept_id)
    in_use = (db.query(OccurrenceAssignment.id).filter(
        OccurrenceAssignment.department_id == dept_id).first()
              or db.query(User.id).filter(User.department_id == dept_id).first())
    if in_use:
        raise HTTPException(status_code=409,
                            detail="Department has users or assignments")
    name = d.name
    db.delete(d)
    db.commit()
    log_audit(db,
              user_id=me.id,
              action="DELETE",
              table_name="departments",
              record_id=dept_id,
              old_values={"name": name})
    return {"message": "Deleted"}
