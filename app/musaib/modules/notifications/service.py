from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from app.musaib.errors import NotFoundError
from app.musaib.modules.notifications.models import Notification

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def notify(s: "Session", recipient_id: int, title: str, message: str, demand_id: int | None = None) -> Notification:
    n = Notification(recipient_id=recipient_id, demand_id=demand_id, title=title, message=message, is_read=False)
    s.add(n)
    s.flush()
    return n


def notify_best_effort(
    s: "Session", recipient_id: int, title: str, message: str, demand_id: int | None = None
) -> Notification | None:
    """
    Notification written in its own savepoint. A failure is logged and leaves
    the surrounding unit of work intact; nothing is retried.
    """
    try:
        with s.begin_nested():
            return notify(s, recipient_id, title, message, demand_id=demand_id)
    except SQLAlchemyError as e:
        logger.warning("Notification dropped (recipient_id=%s demand_id=%s): %s", recipient_id, demand_id, e)
        return None


def list_notifications(s: "Session", recipient_id: int, *, unread_only: bool = False) -> list[Notification]:
    q = s.query(Notification).filter(Notification.recipient_id == recipient_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(s: "Session", notification_id: int, recipient_id: int) -> Notification:
    n = s.get(Notification, notification_id)
    if n is None or n.recipient_id != recipient_id:
        raise NotFoundError(f"Notification {notification_id} not found.")
    n.is_read = True
    s.flush()
    return n
