# ova/api/deps.py
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session, joinedload

from ova.db.session import SessionLocal
from ova.models.role import Role
from ova.models.user import User
from ova.utils.jwt import decode_token, JWTError


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_access(raw_token: str) -> dict:
    try:
        payload = decode_token(raw_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("typ") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")
    return payload


def get_user_from_token(raw_token: Optional[str], db: Session) -> User:
    if not raw_token:
        raise HTTPException(status_code=401, detail="Missing token")

    payload = _decode_access(raw_token)
    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user: Optional[User] = (db.query(User).options(
        joinedload(User.role).joinedload(Role.permissions),
        joinedload(User.department),
    ).filter(User.email == email).first())

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    return user


def current_user(
        authorization: Optional[str] = Header(None),
        db: Session = Depends(get_db),
) -> User:
    return get_user_from_token(_extract_bearer(authorization), db)


def optional_user(
        authorization: Optional[str] = Header(None),
        db: Session = Depends(get_db),
) -> Optional[User]:
    """Anonymous callers get None instead of 401."""
    raw = _extract_bearer(authorization)
    if not raw:
        return None
    return get_user_from_token(raw, db)
