"""Notification inbox routes."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, update
from sqlmodel import Session, select

from services.care_api.notifier import serialize_notification
from services.care_api.security import get_current_user
from shared.db import get_session
from shared.models import Notification, User, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

INBOX_LIMIT = 20


@router.get("")
@router.get("/customer")
def list_notifications(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    rows = session.exec(
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(INBOX_LIMIT)
    ).all()
    unread_count = session.exec(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.id,
            Notification.is_read == False,  # noqa: E712
        )
    ).one()

    now = utcnow()
    notifications = [serialize_notification(n, now) for n in rows]
    return {"notifications": notifications, "total": len(notifications), "unreadCount": unread_count}


@router.post("/mark-all-read")
def mark_all_read(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    result = session.exec(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
    )
    session.commit()
    logger.info(f"Marked {result.rowcount} notifications read for user {user.id}")
    return {"message": "All notifications marked as read", "updated": result.rowcount}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    notification = session.get(Notification, notification_id)
    if notification is None or notification.user_id != user.id:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.is_read = True
    session.add(notification)
    session.commit()
    return {"message": "Notification marked as read"}
