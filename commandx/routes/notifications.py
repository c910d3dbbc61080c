from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_staff
from ..database import get_db
from ..models import User
from ..models_messaging import AdminNotification
from ..services.notification_service import get_preferences, muted_types

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationPreferences(BaseModel):
    notify_auto_clock_out: bool
    notify_missed_clock_in: bool
    notify_onboarding: bool
    notify_sms_replies: bool


class NotificationResponse(BaseModel):
    id: int
    notification_type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    extra_data: Optional[dict] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def _visible(db: Session, user: User):
    """Notifications in categories the user has not muted"""
    query = db.query(AdminNotification)
    muted = muted_types(user)
    if muted:
        query = query.filter(AdminNotification.notification_type.notin_(muted))
    return query


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    query = _visible(db, current_user)
    if unread_only:
        query = query.filter(AdminNotification.is_read.is_(False))
    return (
        query.order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
        .limit(limit)
        .all()
    )


@router.get("/unread-count")
async def unread_count(current_user: User = Depends(require_staff), db: Session = Depends(get_db)):
    count = _visible(db, current_user).filter(AdminNotification.is_read.is_(False)).count()
    return {"unread_count": count}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    notification = (
        db.query(AdminNotification).filter(AdminNotification.id == notification_id).first()
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.is_read = True
    notification.read_at = datetime.utcnow()
    db.commit()
    return {"success": True}


@router.post("/mark-all-read")
async def mark_all_read(current_user: User = Depends(require_staff), db: Session = Depends(get_db)):
    """Mark every notification the user can see as read"""
    updated = (
        _visible(db, current_user)
        .filter(AdminNotification.is_read.is_(False))
        .update(
            {AdminNotification.is_read: True, AdminNotification.read_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return {"success": True, "updated": updated}


@router.get("/preferences", response_model=NotificationPreferences)
async def get_notification_preferences(current_user: User = Depends(require_staff)):
    """Get user's notification preferences"""
    return get_preferences(current_user)


@router.put("/preferences", response_model=NotificationPreferences)
async def update_notification_preferences(
    preferences: NotificationPreferences,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    """Update user's notification preferences"""
    for field, value in preferences.model_dump().items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return get_preferences(current_user)
