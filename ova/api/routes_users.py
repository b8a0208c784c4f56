# ova/api/routes_users.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_perm
from ova.core.security import hash_password
from ova.models.department import Department
from ova.models.role import Role
from ova.models.user import User
from ova.schemas.user import UserCreate, UserOut, UserUpdate
from ova.services.audit_logger import log_audit

router = APIRouter()


def _snapshot(u: User) -> dict:
    return {
        "name": u.name,
        "email": u.email,
        "username": u.username,
        "role_id": u.role_id,
        "department_id": u.department_id,
        "is_active": u.is_active,
    }


def _check_links(db: Session, role_id, department_id) -> None:
    if role_id is not None and not db.get(Role, role_id):
        raise HTTPException(status_code=400, detail="Invalid role_id")
    if department_id is not None and not db.get(Department, department_id):
        raise HTTPException(status_code=400, detail="Invalid department_id")


@router.get("/", response_model=list[UserOut])
def list_users(
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    require_perm(me, "view:user")
    return (db.query(User).options(joinedload(User.role)).order_by(
        User.name).all())


@router.get("/{user_id}", response_model=UserOut)
def get_user(
        user_id: int,
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    require_perm(me, "view:user")
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u


@router.post("/", response_model=UserOut, status_code=201)
def create_user(
        payload: UserCreate,
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    require_perm(me, "create:user")

    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email exists")
    _check_links(db, payload.role_id, payload.department_id)

    u = User(
        name=payload.name,
        email=email,
        username=payload.username or None,
        mobile_no=payload.mobile_no,
        password_hash=hash_password(payload.password),
        department_id=payload.department_id,
        role_id=payload.role_id,
        is_active=payload.is_active,
        is_first_login=True,
    )
    db.add(u)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username or email exists")
    db.refresh(u)

    log_audit(db,
              user_id=me.id,
              action="CREATE",
              table_name="users",
              record_id=u.id,
              new_values=_snapshot(u))
    return u


@router.put("/{user_id}", response_model=UserOut)
def update_user(
        user_id: int,
        payload: UserUpdate,
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    require_perm(me, "edit:user")
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")

    email = payload.email.lower()
    clash = db.query(User.id).filter(User.email == email,
                                     User.id != user_id).first()
    if clash:
        raise HTTPException(status_code=409, detail="Email exists")
    _check_links(db, payload.role_id, payload.department_id)

    old = _snapshot(u)
    u.name = payload.name
    u.email = email
    u.username = payload.username or None
    u.mobile_no = payload.mobile_no
    u.is_active = payload.is_active
    u.department_id = payload.department_id
    u.role_id = payload.role_id
    if payload.password:
        u.password_hash = hash_password(payload.password)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username or email exists")
    db.refresh(u)

    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="users",
              record_id=u.id,
              old_values=old,
              new_values=_snapshot(u))
    return u


@router.delete("/{user_id}")
def delete_user(
        user_id: int,
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    """Deactivates; occurrences keep pointing at the user."""
    require_perm(me, "delete:user")
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    if u.id == me.id:
        raise HTTPException(status_code=400,
                            detail="You cannot deactivate yourself")
    u.is_active = False
    db.commit()

    log_audit(db,
              user_id=me.id,
              action="DELETE",
              table_name="users",
              record_id=user_id,
              old_values={"is_active": True},
              new_values={"is_active": False})
    return {"message": "Deactivated"}
