"""Notification fan-out: database rows plus realtime Redis publishing."""
import logging
from datetime import datetime
from typing import List, Optional

import redis
from fastapi import Depends
from sqlmodel import Session, or_, select

from shared.db import get_session
from shared.models import Notification, User, as_utc, utcnow
from shared.redis_client import get_redis, notification_channel, publish_realtime_update
from shared.types import AdminType, Role

logger = logging.getLogger(__name__)


def time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Human label for how long ago something happened."""
    now = as_utc(now or utcnow())
    seconds = int((now - as_utc(created_at)).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    if seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    days = seconds // 86400
    return f"{days} day{'s' if days > 1 else ''} ago"


def serialize_notification(notification: Notification, now: Optional[datetime] = None) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "time": time_ago(notification.created_at, now),
        "unread": not notification.is_read,
        "relatedId": notification.related_id,
        "createdAt": notification.created_at.isoformat(),
    }


class Notifier:
    """
    Collects notifications written during a request.

    Rows are added to the caller's session; publish() must run after the
    commit so subscribers never see an id that is not yet visible.
    """

    def __init__(self, session: Session, redis_client: redis.Redis):
        self.session = session
        self.redis_client = redis_client
        self._pending: List[Notification] = []

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        related_id: Optional[int] = None,
        type: str = "ambulance",
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
        )
        self.session.add(notification)
        self._pending.append(notification)
        return notification

    def notify_admins(
        self,
        state: Optional[str],
        title: str,
        message: str,
        related_id: Optional[int] = None,
        type: str = "ambulance",
    ) -> int:
        """Notify system admins, plus state admins of `state` when known."""
        query = select(User.id).where(User.role == Role.ADMIN.value)
        system_admin = or_(User.admin_type == AdminType.SYSTEM.value, User.admin_type.is_(None))
        if state:
            query = query.where(
                or_(
                    system_admin,
                    (User.admin_type == AdminType.STATE.value) & (User.state == state),
                )
            )
        else:
            query = query.where(system_admin)

        admin_ids = self.session.exec(query).all()
        for admin_id in admin_ids:
            self.notify(admin_id, title, message, related_id, type)
        return len(admin_ids)

    def publish(self) -> None:
        """Push committed notifications to their owners' realtime channels."""
        pending, self._pending = self._pending, []
        for notification in pending:
            message = {"type": "notification", "notification": serialize_notification(notification)}
            message["notification"]["userId"] = notification.user_id
            try:
                publish_realtime_update(
                    self.redis_client,
                    notification_channel(notification.user_id),
                    message,
                )
            except redis.RedisError as e:
                logger.warning(f"Realtime publish failed for notification {notification.id}: {e}")


def get_notifier(
    session: Session = Depends(get_session),
    redis_client: redis.Redis = Depends(get_redis),
) -> Notifier:
    return Notifier(session, redis_client)
