# ova/utils/jwt.py
from datetime import timedelta
from typing import Tuple

from jose import jwt, JWTError

from ova.core.config import settings
from ova.utils.timez import utcnow


def _create_token(*, subject: str, token_type: str,
                  expires_delta: timedelta) -> str:
    now = utcnow()
    payload = {
        "sub": subject,  # user email
        "typ": token_type,  # access | refresh
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access_refresh(subject: str) -> Tuple[str, str]:
    """
    Create access + refresh tokens for a user email.
    """
    access_token = _create_token(
        subject=subject,
        token_type="access",
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    refresh_token = _create_token(
        subject=subject,
        token_type="refresh",
        expires_delta=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
    )
    return access_token, refresh_token


def decode_token(raw_token: str) -> dict:
    """Raises JWTError on a bad signature or an expired token."""
    return jwt.decode(raw_token,
                      settings.JWT_SECRET,
                      algorithms=[settings.JWT_ALG])


__all__ = ["create_access_refresh", "decode_token", "JWTError"]
