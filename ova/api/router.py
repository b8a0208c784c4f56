# ova/api/router.py
from fastapi import APIRouter
from ova.api import (
    # Core
    routes_auth,
    routes_me,
    routes_users,
    routes_roles,
    routes_permissions,
    routes_departments,

    # Taxonomy / lookups
    routes_incidents,
    routes_locations,

    # Occurrences
    routes_occurrences,
    routes_feedback,
    routes_notifications,
    routes_reports,
    routes_dashboard,
)

api_router = APIRouter()

# ---- Core
api_router.include_router(routes_auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(routes_me.router, prefix="/me", tags=["me"])
api_router.include_router(routes_users.router, prefix="/users", tags=["users"])
api_router.include_router(routes_roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(routes_permissions.router,
                          prefix="/permissions",
                          tags=["permissions"])
api_router.include_router(routes_departments.router,
                          prefix="/departments",
                          tags=["departments"])

# ---- Taxonomy
api_router.include_router(routes_incidents.router,
                          prefix="/incidents",
                          tags=["incidents"])
api_router.include_router(routes_locations.router,
                          prefix="/locations",
                          tags=["locations"])

# ---- Occurrences
api_router.include_router(routes_occurrences.router,
                          prefix="/occurrences",
                          tags=["occurrences"])
api_router.include_router(routes_feedback.router,
                          prefix="/feedback",
                          tags=["feedback"])
api_router.include_router(routes_notifications.router,
                          prefix="/notifications",
                          tags=["notifications"])
api_router.include_router(routes_reports.router,
                          prefix="/reports",
                          tags=["reports"])
api_router.include_router(routes_dashboard.router,
                          prefix="/dashboard",
                          tags=["dashboard"])
