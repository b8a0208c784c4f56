from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.core.rbac import require_perm
from ova.models.permission import Permission
from ova.models.user import User
from ova.schemas.permission import PermissionCreate, PermissionOut
from ova.services.audit_logger import log_audit

router = APIRouter()


@router.get("/", response_model=list[PermissionOut])
def list_permissions(db: Session = Depends(get_db),
                     me: User = Depends(current_user)):
    require_perm(me, "view:permission")
    return db.query(Permission).order_by(Permission.code).all()


@router.post("/", response_model=PermissionOut, status_code=201)
def create_permission(payload: PermissionCreate,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "manage:permissions")
    code = payload.code.strip()
    if db.query(Permission).filter(Permission.code == code).first():
        raise HTTPException(status_code=409, detail="Permission exists")
    p = Permission(code=code,
                   name=payload.name,
                   description=payload.description)
    db.add(p)
    db.commit()
    db.refresh(p)
    log_audit(db,
              user_id=me.id,
              action="CREATE",
              table_name="permissions",
              record_id=p.id,
              new_values={"code": p.code})
    return p


@router.put("/{permission_id}", response_model=PermissionOut)
def update_permission(permission_id: int,
                      payload: PermissionCreate,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "manage:permissions")
    p = db.get(Permission, permission_id)
    if not p:
        raise HTTPException(status_code=404, detail="Permission not found")
    code = payload.code.strip()
    clash = db.query(Permission.id).filter(
        Permission.code == code, Permission.id != permission_id).first()
    if clash:
        raise HTTPException(status_code=409, detail="Permission exists")
    old = {"code": p.code, "name": p.name}
    p.code = code
    p.name = payload.name
    p.description = payload.description
    db.commit()
    db.refresh(p)
    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="permissions",
              record_id=p.id,
              old_values=old,
              new_values={
                  "code": p.code,
                  "name": p.name
              })
    return p


@router.delete("/{permission_id}")
def delete_permission(permission_id: int,
                      db: Session = Depends(get_db),
                      me: User = Depends(current_user)):
    require_perm(me, "manage:permissions")
    p = db.get(Permission, permission_id)
    if not p:
        raise HTTPException(status_code=404, detail="Permission not found")
    code = p.code
    db.delete(p)
    db.commit()
    log_audit(db,
              user_id=me.id,
              action="DELETE",
              table_name="permissions",
              record_id=permission_id,
              old_values={"code": code})
    return {"message": "Deleted"}
