import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user, _extract_bearer
from ova.core.rbac import user_perm_codes
from ova.core.security import hash_password, verify_password
from ova.models.user import User
from ova.schemas.auth import (
    ChangePasswordIn,
    FirstLoginPasswordIn,
    LoginIn,
    MeOut,
    RefreshIn,
    TokenOut,
)
from ova.services.audit_logger import log_audit
from ova.utils.jwt import create_access_refresh, decode_token, JWTError

logger = logging.getLogger(__name__)

router = APIRouter()


def _tokens_for(user: User) -> TokenOut:
    access, refresh = create_access_refresh(user.email)
    return TokenOut(access_token=access,
                    refresh_token=refresh,
                    is_first_login=bool(user.is_first_login))


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    return _tokens_for(user)


@router.post("/refresh", response_model=TokenOut)
def refresh_token(
        request: Request,
        payload: Optional[RefreshIn] = None,
        db: Session = Depends(get_db),
):
    """
    New token pair from a refresh token (body, falls back to
    Authorization: Bearer).
    """
    raw = (payload.refresh_token if payload else None) or _extract_bearer(
        request.headers.get("Authorization"))
    if not raw:
        raise HTTPException(status_code=401, detail="Missing refresh token")

    try:
        claims = decode_token(raw)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if claims.get("typ") != "refresh":
        raise HTTPException(status_code=401, detail="Wrong token type")

    user = db.query(User).filter(User.email == claims.get("sub")).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    return _tokens_for(user)


@router.post("/change-password")
def change_password(
        payload: ChangePasswordIn,
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    if not verify_password(payload.current_password, me.password_hash):
        raise HTTPException(status_code=400,
                            detail="Current password is incorrect")
    me.password_hash = hash_password(payload.new_password)
    db.commit()
    log_audit(db,
              user_id=me.id,
              action="UPDATE",
              table_name="users",
              record_id=me.id,
              new_values={"password": "changed"})
    return {"message": "Password changed"}


@router.post("/first-login-password")
def first_login_password(
        payload: FirstLoginPasswordIn,
        db: Session = Depends(get_db),
        me: User = Depends(current_user),
):
    if not me.is_first_login:
        raise HTTPException(status_code=400,
                            detail="This is not your first login")
    if payload.new_password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    me.password_hash = hash_password(payload.new_password)
    me.is_first_login = False
    db.commit()
    return {"message": "Password set"}


@router.get("/me", response_model=MeOut)
def me(me: User = Depends(current_user)):
    return MeOut(
        id=me.id,
        name=me.name,
        email=me.email,
        username=me.username,
        mobile_no=me.mobile_no,
        is_first_login=bool(me.is_first_login),
        role=me.role_name or None,
        department_id=me.department_id,
        department_name=me.department.name if me.department else None,
        permissions=sorted(user_perm_codes(me)),
    )
