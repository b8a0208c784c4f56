from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.core.rbac import is_admin_user
from ova.models.permission import Permission
from ova.models.user import User
from ova.schemas.permission import PermissionOut

router = APIRouter()


@router.get("/permissions", response_model=List[PermissionOut])
def my_permissions(db: Session = Depends(get_db),
                   me: User = Depends(current_user)):
    """Every permission for admins, otherwise the role's."""
    if is_admin_user(me):
        return db.query(Permission).order_by(Permission.code).all()
    perms = me.role.permissions if me.role else []
    return sorted(perms, key=lambda p: p.code)
