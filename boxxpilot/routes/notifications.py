from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Notification, Role, User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: int
    type: str
    jobId: Optional[int] = None
    recipientRole: str
    title: Optional[str] = None
    message: Optional[str] = None
    isRead: bool
    createdAt: Optional[datetime] = None


class UnreadCountResponse(BaseModel):
    unread_count: int


def _feed_query(db: Session, user: User):
    """Notifications addressed to the user's role; owners also see dispatcher traffic"""
    roles = [user.role]
    if user.role == Role.OWNER:
        roles.append(Role.DISPATCHER)
    return db.query(Notification).filter(
        Notification.company_id == user.company_id,
        or_(*[Notification.recipient_role == role for role in roles]),
    )


@router.get("", response_model=list[NotificationResponse])
async def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the notifications feed, newest first"""
    query = _feed_query(db, current_user)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))

    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    return [
        NotificationResponse(
            id=n.id,
            type=n.type,
            jobId=n.job_id,
            recipientRole=n.recipient_role,
            title=n.title,
            message=n.message,
            isRead=n.is_read,
            createdAt=n.created_at,
        )
        for n in notifications
    ]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    count = _feed_query(db, current_user).filter(Notification.is_read.is_(False)).count()
    return UnreadCountResponse(unread_count=count)


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a single notification as read"""
    notification = _feed_query(db, current_user).filter(Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.is_read = True
    db.commit()
    return {"message": "Notification marked as read"}
