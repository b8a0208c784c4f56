from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_perm
from ova.models.permission import Permission
from ova.models.role import Role
from ova.models.user import User
from ova.schemas.role import RoleCreate, RoleOut, RolePermissionsIn
from ova.services.audit_logger import log_audit

router = APIRouter()


def _permissions(db: Session, ids) -> list:
    ids = list(dict.fromkeys(ids or []))
    if not ids:
        return []
    perms = db.query(Permission).filter(Permission.id.in_(ids)).all()
    if len(perms) != len(ids):
        raise HTTPException(status_code=400, detail="Invalid permission_ids")
    return perms


def _get_role(db: Session, role_id: int) -> Role:
    r = db.get(Role, role_id)
    if not r:
        raise HTTPException(status_code=404, detail="Role not found")
    return r


@router.get("/", response_model=list[RoleOut])
def list_roles(db: Session = Depends(get_db), me: User = Depends(current_user)):
    require_perm(me, "view:role")
    return (db.query(Role).options(selectinload(Role.permissions)).order_by(
        Role.name).all())


@router.get("/{role_id}", response_model=RoleOut)
def get_role(role_id: int,
             db: Session = Depends(get_db),
             me: User = Depends(current_user)):
    require_perm(me, "view:role")
    return _get_role(db, role_id)


@router.post("/", response_model=RoleOut, status_code=201)
def create_role(payload: RoleCreate,
                db: Session = Depends(get_db),
                me: User = Depends(current_user)):
    require_perm(me, "create:role")
    name = payload.name.strip().upper()
    if db.query(Role).filter(Role.name == name).first():
        raise HTTPException(status_code=409, detail="Role exists")
    r = Role(name=name, description=payload.description)
    r.permissions = _permissions(db, payload.permission_ids)
    db.add(r)
    db.commit()
    db.refresh(r)
    log_audit(db,
              user_id=me.id,
              action="CREATE",
              table_name="roles",
              record_id=r.id,
              new_values={
                  "name": r.name,
                  "permission_ids": r.permission_ids
              })
    return r


@router.put("/{role_id}", response_model=RoleOut)
def update_role(role_id: int,
                payload: RoleCreate,
                db: Session = Depends(get_db),
                me: User = Depends(current_user)):
    require_perm(me, "edit:role")
    r = _get_role(db, role_id)
    name = payload.name.strip().upper()
    clash = db.query(Role.id).filter(Role.name == name,
                                     Role.id != role_id).first()
    if clash:
        raise HTTPException(status_code=409, detail="Role exists")

    old = {"name": r.name, "permission_ids": r.permission_ids}
    r.name = name
    r.description = payload.description
    r.permissions = _permissions(db, payload.permission_ids)
    db.commit()
    db.refresh(r)
    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="roles",
              record_id=r.id,
              old_values=old,
              new_values={
                  "name": r.name,
                  "permission_ids": r.permission_ids
              })
    return r


@router.put("/{role_id}/permissions", response_model=RoleOut)
def set_role_permissions(role_id: int,
                         payload: RolePermissionsIn,
                         db: Session = Depends(get_db),
                         me: User = Depends(current_user)):
    require_perm(me, "manage:permissions")
    r = _get_role(db, role_id)
    old = r.permission_ids
    r.permissions = _permissions(db, payload.permission_ids)
    db.commit()
    db.refresh(r)
    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="role_permissions",
              record_id=r.id,
              old_values={"permission_ids": old},
              new_values={"permission_ids": r.permission_ids})
    return r


@router.delete("/{role_id}")
def delete_role(role_id: int,
                db: Session = Depends(get_db),
                me: User = Depends(current_user)):
    require_perm(me, "delete:role")
    r = _get_role(db, role_id)
    if db.query(User.id).filter(User.role_id == role_id).first():
        raise HTTPException(status_code=409,
                            detail="Role is assigned to users")
    name = r.name
    db.delete(r)
    db.commit()
    log_audit(db,
              user_id=me.id,
              action="DELETE",
              table_name="roles",
              record_id=role_id,
              old_values={"name": name})
    return {"message": "Deleted"}
