"""
Shared fixtures: in-memory SQLite with one shared connection, seeded
reference data, user/token factories and a TestClient bound to the same DB.
"""
import os

# must be set before ova.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SITE_URL"] = "http://ova.test"

import itertools
from datetime import datetime
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ova.api.deps import get_db
from ova.core.security import hash_password
from ova.db.base import Base
from ova.db.init_db import seed
from ova.main import app
from ova.models import Department, Incident, Role, Severity, User
from ova.services import occurrences as occ_svc
from ova.utils.jwt import create_access_refresh


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine,
                        autocommit=False,
                        autoflush=False,
                        future=True)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    seed(s)
    yield s
    s.close()


@pytest.fixture()
def client(db, session_factory):

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def outbox():
    """Captures notification emails instead of sending them."""
    with patch("ova.services.notifications.send_email",
               return_value=True) as sent:
        yield sent


def department(db, name: str) -> Department:
    return db.query(Department).filter(Department.name == name).one()


def severity(db, name: str) -> Severity:
    return db.query(Severity).filter(Severity.name == name).one()


@pytest.fixture()
def make_user(db):
    counter = itertools.count(1)

    def _make(role="EMPLOYEE",
              dept=None,
              *,
              email=None,
              name=None,
              password="secret-pass",
              active=True,
              first_login=False):
        n = next(counter)
        r = db.query(Role).filter(Role.name == role).one()
        u = User(
            name=name or f"{role.title()} {n}",
            email=email or f"{role.lower()}{n}@ova.org",
            password_hash=hash_password(password),
            role_id=r.id,
            department_id=department(db, dept).id if dept else None,
            is_active=active,
            is_first_login=first_login,
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    return _make


def auth_headers(user) -> dict:
    access, _ = create_access_refresh(user.email)
    return {"Authorization": f"Bearer {access}"}


@pytest.fixture()
def admin(db):
    return db.query(User).filter(User.email == "admin@example.com").one()


@pytest.fixture()
def taxonomy(db):
    """
    Physical Assault (HIGH) -> Punching -> With weapon
    Verbal Abuse (LOW)
    """
    high = severity(db, "HIGH")
    low = severity(db, "LOW")
    physical = Incident(name="Physical Assault", severity_id=high.id)
    verbal = Incident(name="Verbal Abuse", severity_id=low.id)
    db.add_all([physical, verbal])
    db.flush()
    punching = Incident(name="Punching",
                        severity_id=high.id,
                        parent_id=physical.id)
    db.add(punching)
    db.flush()
    weapon = Incident(name="With weapon",
                      severity_id=high.id,
                      parent_id=punching.id)
    db.add(weapon)
    db.commit()
    return {
        "physical": physical,
        "punching": punching,
        "weapon": weapon,
        "verbal": verbal,
    }


@pytest.fixture()
def make_occurrence(db, taxonomy):

    def _make(user=None, *, incident=None, **kw):
        data = occ_svc.OccurrenceInput(
            description=kw.pop("description",
                               "Visitor shouted at triage nurse"),
            incident_id=(incident or taxonomy["punching"]).id,
            occurrence_date=kw.pop("occurrence_date",
                                   datetime(2025, 5, 4, 10, 30)),
            **kw,
        )
        return occ_svc.create_occurrence(db, data, user)

    return _make
