# ova/api/routes_dashboard.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user as auth_current_user
from ova.models.user import User
from ova.schemas.dashboard import DashboardOut
from ova.services.dashboard_service import DashboardError, get_dashboard

router = APIRouter()


@router.get("/", response_model=DashboardOut)
def dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_current_user),
) -> DashboardOut:
    """
    Global counts for ADMIN / QUALITY_ASSURANCE,
    department counts for department managers and heads.
    """
    try:
        return get_dashboard(db, current_user)
    except DashboardError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
