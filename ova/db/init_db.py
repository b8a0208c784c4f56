# ova/db/init_db.py
from __future__ import annotations

import argparse
import logging
import os

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ova.core.security import hash_password
from ova.db.session import engine
from ova.db.base import Base

# Import all models so metadata is complete
from ova.models import (  # noqa: F401
    Department, Permission, Role, RolePermission, User, Severity, Incident,
    OccurrenceStatus, OccurrenceLocation, Occurrence, OccurrenceAssignment,
    OccurrenceMessage, FeedbackToken, NotificationPreference, Notification,
    AuditLog)

logger = logging.getLogger(__name__)

ROLES = [
    ("ADMIN", "Full system access"),
    ("QUALITY_MANAGER", "Department-level access and oversight"),
    ("QUALITY_ASSURANCE", "Access to all incidents and reporting features"),
    ("SAFETY_OFFICER", "Access to incident review and safety recommendations"),
    ("EMPLOYEE", "Basic access to report incidents and view own reports"),
    ("DEPARTMENT_MANAGER", "Department-level access and oversight"),
    ("DEPARTMENT_HEAD", "Head of a department"),
]

# (code, name, description)
PERMISSIONS = [
    ("admin:all", "Full Administrative Access",
     "Full access to all system features"),
    ("manage:management", "Manage Department",
     "Ability to view department pages"),
    ("manage:users", "Manage users", "Ability to view users pages"),
    ("manage:roles", "Manage roles", "Ability to view roles pages"),
    ("manage:departments", "Manage Departments",
     "Ability to view departments pages"),
    ("manage:permissions", "Manage Permissions",
     "Ability to manage permissions"),
    ("manage:occurrences", "Manage Occurrences",
     "Ability to view occurrences pages"),
    ("manage:reports", "Manage Reports", "Ability to view reports pages"),
    ("manage:settings", "Manage Settings", "Ability to view settings pages"),
    ("view:user", "View User", "Ability to view user profile"),
    ("create:user", "Create User", "Ability to create new user"),
    ("edit:user", "Edit User", "Ability to edit user details"),
    ("delete:user", "Delete User", "Ability to delete user"),
    ("view:role", "View Role", "Ability to view role"),
    ("create:role", "Create Role", "Ability to create new role"),
    ("edit:role", "Edit Role", "Ability to edit role"),
    ("delete:role", "Delete Role", "Ability to delete role"),
    ("view:permission", "View Permission", "Ability to view permission"),
    ("view:occurrence", "View Occurrence", "Ability to view occurrence"),
    ("create:occurrence", "Create Occurrence",
     "Ability to create new occurrence"),
    ("edit:occurrence", "Edit Occurrence",
     "Ability to edit existing occurrence"),
    ("delete:occurrence", "Delete Occurrence", "Ability to delete occurrence"),
    ("resolve:occurrence", "Resolve Occurrence",
     "Ability to resolve occurrence"),
    ("refer:occurrence", "Refer Occurrence",
     "Ability to refer occurrences to departments"),
    ("action:occurrence", "Create Action Plan",
     "Ability to create action plans for occurrence"),
    ("view:feedback-share", "View Feedback Share",
     "Ability to view feedback share"),
]

_QUALITY = [
    "manage:reports",
    "manage:occurrences",
    "view:occurrence",
    "create:occurrence",
    "edit:occurrence",
    "resolve:occurrence",
    "refer:occurrence",
]
_DEPARTMENT = [
    "manage:reports",
    "manage:occurrences",
    "view:occurrence",
    "action:occurrence",
    "view:feedback-share",
]

ROLE_PERMISSIONS = {
    "ADMIN": ["admin:all"],
    "QUALITY_MANAGER": _QUALITY + ["view:user"],
    "QUALITY_ASSURANCE": _QUALITY + ["view:feedback-share"],
    "SAFETY_OFFICER": ["view:occurrence", "create:occurrence"],
    "EMPLOYEE": ["view:occurrence", "create:occurrence"],
    "DEPARTMENT_MANAGER": _DEPARTMENT,
    "DEPARTMENT_HEAD": _DEPARTMENT,
}

# (name, variant)
STATUSES = [
    ("OPEN", "outline"),
    ("ASSIGNED", "default"),
    ("IN_PROGRESS", "default"),
    ("ANSWERED", "default"),
    ("ANSWERED_PARTIALLY", "default"),
    ("COMPLETED", "default"),
    ("CLOSED", "secondary"),
]

# (name, level, variant)
SEVERITIES = [
    ("LOW", 1, "outline"),
    ("MEDIUM", 2, "secondary"),
    ("HIGH", 3, "destructive"),
    ("CRITICAL", 4, "destructive"),
]

LOCATIONS = ["Office", "Warehouse", "Factory", "Lunch Room"]

DEPARTMENTS = [
    "Information Technology",
    "Human Resources",
    "Security",
    "Nursing",
    "Quality",
]

ADMIN_EMAIL = "admin@example.com"


def list_tables() -> set:
    names = set(inspect(engine).get_table_names())
    logger.info("Existing tables: %s", sorted(names))
    return names


def seed_roles(db: Session) -> None:
    for name, description in ROLES:
        if not db.query(Role).filter(Role.name == name).first():
            db.add(Role(name=name, description=description))
    db.flush()


def seed_permissions(db: Session) -> None:
    """
    Seed ONLY missing permission codes; safe to run multiple times.
    """
    for code, name, description in PERMISSIONS:
        exists = db.query(Permission).filter(Permission.code == code).first()
        if not exists:
            db.add(Permission(code=code, name=name, description=description))
    db.flush()


def seed_role_permissions(db: Session) -> None:
    """Adds missing grants; grants made by hand are left alone."""
    perms = {p.code: p for p in db.query(Permission).all()}
    for role_name, codes in ROLE_PERMISSIONS.items():
        role = db.query(Role).filter(Role.name == role_name).first()
        if role is None:
            logger.warning("Role %s not found, skipping grants", role_name)
            continue
        have = {p.code for p in role.permissions}
        for code in codes:
            if code not in have and code in perms:
                role.permissions.append(perms[code])
    db.flush()


def seed_reference_data(db: Session) -> None:
    for name, variant in STATUSES:
        if not db.query(OccurrenceStatus).filter(
                OccurrenceStatus.name == name).first():
            db.add(OccurrenceStatus(name=name, variant=variant))

    for name, level, variant in SEVERITIES:
        if not db.query(Severity).filter(Severity.name == name).first():
            db.add(Severity(name=name, level=level, variant=variant))

    for name in LOCATIONS:
        if not db.query(OccurrenceLocation).filter(
                OccurrenceLocation.name == name).first():
            db.add(OccurrenceLocation(name=name))

    for name in DEPARTMENTS:
        if not db.query(Department).filter(Department.name == name).first():
            db.add(Department(name=name))
    db.flush()


def seed_admin(db: Session) -> None:
    if db.query(User).filter(User.email == ADMIN_EMAIL).first():
        return
    role = db.query(Role).filter(Role.name == "ADMIN").first()
    db.add(
        User(
            name="Admin User",
            username="admin",
            email=ADMIN_EMAIL,
            password_hash=hash_password(
                os.getenv("ADMIN_PASSWORD", "adminpassword")),
            role_id=role.id if role else None,
            is_active=True,
            is_first_login=True,
        ))
    db.flush()


def seed(db: Session) -> None:
    seed_roles(db)
    seed_permissions(db)
    seed_role_permissions(db)
    seed_reference_data(db)
    seed_admin(db)
    db.commit()


def run(fresh: bool = False) -> None:
    if fresh:
        logger.warning("Dropping ALL tables (dev only)")
        Base.metadata.drop_all(bind=engine)

    logger.info("Creating all missing tables")
    Base.metadata.create_all(bind=engine)
    list_tables()

    try:
        with Session(engine) as db:
            seed(db)
            logger.info("Reference data seeded (missing rows inserted).")
    except SQLAlchemyError:
        logger.exception("Seeding failed")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed reference data).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    args = parser.parse_args()
    run(fresh=args.fresh)
