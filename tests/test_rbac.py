from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from ova.core import rbac


def _user(role, codes=(), *, user_id=1, department_id=None):
    perms = [SimpleNamespace(code=c) for c in codes]
    return SimpleNamespace(id=user_id,
                           role=SimpleNamespace(name=role, permissions=perms),
                           department_id=department_id)


def _occ(created_by_id=None, department_ids=()):
    return SimpleNamespace(
        created_by_id=created_by_id,
        assignments=[SimpleNamespace(department_id=d) for d in department_ids])


class TestPermissions:

    def test_admin_role_passes_everything(self):
        assert rbac.has_perm(_user("admin"), "delete:user")

    def test_admin_all_code_passes_everything(self):
        assert rbac.has_perm(_user("EMPLOYEE", ["admin:all"]), "manage:reports")

    def test_granted_code(self):
        u = _user("EMPLOYEE", ["view:occurrence"])
        assert rbac.has_perm(u, "view:occurrence")
        assert not rbac.has_perm(u, "edit:occurrence")

    def test_require_perm_raises_403(self):
        with pytest.raises(HTTPException) as exc:
            rbac.require_perm(_user("EMPLOYEE"), "manage:reports")
        assert exc.value.status_code == 403
        assert "manage:reports" in exc.value.detail

    def test_require_any_is_or(self):
        u = _user("EMPLOYEE", ["refer:occurrence"])
        rbac.require_any(u, ["resolve:occurrence", "refer:occurrence"])
        with pytest.raises(HTTPException):
            rbac.require_any(u, ["resolve:occurrence"], message="nope")

    def test_no_user(self):
        assert not rbac.has_perm(None, "view:occurrence")
        assert rbac.user_perm_codes(None) == set()


class TestOccurrenceAccess:

    def test_quality_assurance_sees_all(self):
        assert rbac.can_access_occurrence(_user("QUALITY_ASSURANCE"), _occ())

    def test_assigned_department(self):
        u = _user("DEPARTMENT_MANAGER", department_id=7)
        assert rbac.can_access_occurrence(u, _occ(department_ids=[3, 7]))
        assert not rbac.can_access_occurrence(u, _occ(department_ids=[3]))

    def test_reporter(self):
        u = _user("EMPLOYEE", user_id=42)
        assert rbac.can_access_occurrence(u, _occ(created_by_id=42))
        assert not rbac.can_access_occurrence(u, _occ(created_by_id=43))

    def test_no_department_no_access(self):
        u = _user("EMPLOYEE")
        assert not rbac.can_access_occurrence(u, _occ(department_ids=[1]))

    def test_require_occurrence_access(self):
        with pytest.raises(HTTPException) as exc:
            rbac.require_occurrence_access(_user("EMPLOYEE"), _occ())
        assert exc.value.status_code == 403
