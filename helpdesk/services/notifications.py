"""
Notification dispatcher: per-user notification records created as a side effect of ticket events,
plus read-state management. Dispatch is best effort: a failed insert is logged and never
propagates into the ticket mutation that triggered it.
"""

import logging
from typing import Optional

from helpdesk import activity
from helpdesk.models import Notification, NotificationType
from helpdesk.store.base import Store

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, store: Store):
        self.store = store

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = NotificationType.INFO.value,
        ticket_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """Create a notification for one user. Returns None if the store rejected it."""
        if isinstance(type, NotificationType):
            type = type.value
        try:
            notification = self.store.notifications.create(
                {
                    "user_id": user_id,
                    "title": title,
                    "message": message,
                    "type": type,
                    "is_read": False,
                    "ticket_id": ticket_id,
                }
            )
        except Exception as e:
            logger.warning("Notification for user %s (%s) not created: %s", user_id, title, e)
            return None
        activity.emit(
            "notification_created",
            {"notification_id": notification.id, "user_id": user_id, "type": type, "ticket_id": ticket_id},
        )
        return notification

    def list_for_user(self, user_id: int, unread_only: bool = False) -> list[Notification]:
        """Newest first."""
        if unread_only:
            return self.store.notifications.find(user_id=user_id, is_read=False)
        return self.store.notifications.find(user_id=user_id)

    def get(self, notification_id: int) -> Optional[Notification]:
        return self.store.notifications.get(notification_id)

    def mark_read(self, notification_id: int) -> Optional[Notification]:
        return self.store.notifications.update(notification_id, {"is_read": True})

    def mark_all_read(self, user_id: int) -> int:
        """Flip every unread notification of the user; returns how many changed."""
        return self.store.notifications.update_where({"is_read": True}, user_id=user_id, is_read=False)

    def unread_count(self, user_id: int) -> int:
        return len(self.store.notifications.find(user_id=user_id, is_read=False))

    def delete(self, notification_id: int) -> bool:
        return self.store.notifications.delete(notification_id)

    def delete_all(self, user_id: int) -> int:
        return self.store.notifications.delete_where(user_id=user_id)
