from __future__ import annotations

from typing import Any, Iterable, Optional, Set

from fastapi import HTTPException, status

ADMIN_ALL = "admin:all"
ADMIN_ROLE = "ADMIN"

# roles that see every occurrence regardless of assignment
GLOBAL_ROLES = {ADMIN_ROLE, "QUALITY_ASSURANCE"}


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def role_name(user: Any) -> str:
    role = getattr(user, "role", None) if user else None
    if isinstance(role, str):
        return role.upper()
    return (getattr(role, "name", None) or "").upper()


def user_perm_codes(user: Any) -> Set[str]:
    """Codes granted through the user's single role."""
    role = getattr(user, "role", None) if user else None
    return {
        p.code.strip()
        for p in (getattr(role, "permissions", None) or [])
        if p.code and p.code.strip()
    }


def is_admin_user(user: Any) -> bool:
    """ADMIN role or an explicit admin:all grant bypasses every check."""
    if not user:
        return False
    return role_name(user) == ADMIN_ROLE or ADMIN_ALL in user_perm_codes(user)


def has_perm(user: Any, code: str) -> bool:
    if is_admin_user(user):
        return True
    return bool(code) and code in user_perm_codes(user)


def require_perm(user: Any, code: str) -> None:
    if not has_perm(user, code):
        raise _forbidden(f"Forbidden: missing {code}")


def require_any(user: Any,
                codes: Iterable[str],
                *,
                message: Optional[str] = None) -> None:
    """403 unless the user holds at least one of `codes`."""
    wanted = {c for c in codes if c}
    if not wanted or is_admin_user(user):
        return
    if wanted & user_perm_codes(user):
        return
    raise _forbidden(message or
                     "You do not have permission to perform this action.")


def sees_all_occurrences(user: Any) -> bool:
    return role_name(user) in GLOBAL_ROLES


def can_access_occurrence(user: Any, occurrence: Any) -> bool:
    """
    ADMIN / QUALITY_ASSURANCE see everything; anyone else only occurrences
    referred to their department, plus the ones they reported.
    """
    if not user or occurrence is None:
        return False
    if sees_all_occurrences(user):
        return True
    created_by_id = getattr(occurrence, "created_by_id", None)
    if created_by_id is not None and created_by_id == getattr(user, "id", None):
        return True

    dept_id = getattr(user, "department_id", None)
    if not dept_id:
        return False
    return any(a.department_id == dept_id
               for a in getattr(occurrence, "assignments", None) or [])


def require_occurrence_access(user: Any, occurrence: Any) -> None:
    if not can_access_occurrence(user, occurrence):
        raise _forbidden("You do not have access to this occurrence")
