from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ova.api.deps import get_db, current_user
from ova.models.user import User
from ova.schemas.notification import (
    NotificationListOut,
    PreferenceIn,
    PreferenceOut,
)
from ova.services import notifications as svc

router = APIRouter()


@router.get("/", response_model=NotificationListOut)
def list_unread(limit: int = Query(10, ge=1, le=100),
                db: Session = Depends(get_db),
                me: User = Depends(current_user)):
    return {
        "notifications": svc.unread_notifications(db, me.id, limit=limit),
        "count": svc.unread_count(db, me.id),
    }


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db),
                 me: User = Depends(current_user)):
    return {"count": svc.unread_count(db, me.id)}


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db),
                  me: User = Depends(current_user)):
    return {"updated": svc.mark_all_read(db, me.id)}


@router.post("/{notification_id}/read")
def mark_read(notification_id: int,
              db: Session = Depends(get_db),
              me: User = Depends(current_user)):
    if not svc.mark_read(db, me.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Marked as read"}


@router.get("/preferences", response_model=List[PreferenceOut])
def get_preferences(db: Session = Depends(get_db),
                    me: User = Depends(current_user)):
    return svc.get_preferences(db, me.id)


@router.put("/preferences", response_model=PreferenceOut)
def save_preferences(payload: PreferenceIn,
                     db: Session = Depends(get_db),
                     me: User = Depends(current_user)):
    try:
        return svc.save_preference(db,
                                   me,
                                   enabled=payload.enabled,
                                   channel=payload.channel,
                                   email=payload.email,
                                   mobile=payload.mobile,
                                   severity_ids=payload.severity_ids,
                                   incident_ids=payload.incident_ids)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
