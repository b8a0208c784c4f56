from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.models.occurrence import OccurrenceLocation
from ova.models.user import User
from ova.schemas.incident import LocationOut, StatusOut
from ova.services import occurrences as svc

router = APIRouter()


@router.get("/", response_model=List[LocationOut])
def list_locations(db: Session = Depends(get_db)):
    # public: the anonymous report form needs it
    return svc.locations(db)


@router.get("/statuses", response_model=List[StatusOut])
def list_statuses(db: Session = Depends(get_db),
                  me: User = Depends(current_user)):
    return svc.statuses(db)


@router.get("/{location_id}", response_model=LocationOut)
def get_location(location_id: int, db: Session = Depends(get_db)):
    loc = db.get(OccurrenceLocation, location_id)
    if not loc:
        raise HTTPException(status_code=404, detail="Location not found")
    return loc
