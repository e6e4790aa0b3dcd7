"""
Notification inbox for the calling user.
"""

import logging
from typing import Dict

from app.core.errors import NotFoundError
from app.models.notification import Notification
from app.repositories.base import Repositories
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, repos: Repositories):
        self.repos = repos

    def _owned(self, user_id: str, notification_id: str) -> Notification:
        found = self.repos.notifications.get(notification_id)
        # Someone else's notification is reported as missing
        if found is None or found.user != user_id:
            raise NotFoundError("Notification not found")
        return found

    def list_notifications(self, user_id: str, unread_only: bool = False, page: int = 1, limit: int = 20) -> Dict:
        """
        Newest first, with the alert summarized as {id, title, type, status, priority}.
        ``unread_count`` always counts the whole inbox.
        """
        items = self.repos.notifications.query(user_id, unread_only=unread_only)
        result = paginate(items, page, limit)
        unread = len(self.repos.notifications.query(user_id, unread_only=True))

        return {
            "notifications": [self._present(n) for n in result["items"]],
            "total_pages": result["total_pages"],
            "current_page": result["current_page"],
            "total": result["total"],
            "unread_count": unread,
        }

    def _present(self, notification: Notification) -> Dict:
        data = notification.model_dump(mode="json")
        alert = self.repos.alerts.get(notification.alert)
        if alert is not None:
            data["alert"] = {
                "id": alert.id,
                "title": alert.title,
                "type": alert.type,
                "status": alert.status,
                "priority": alert.priority,
            }
        else:
            data["alert"] = {"id": notification.alert}
        return data

    def mark_read(self, user_id: str, notification_id: str) -> Dict:
        self._owned(user_id, notification_id)
        updated = self.repos.notifications.mark_read(notification_id)
        if updated is None:
            raise NotFoundError("Notification not found")
        return updated.model_dump(mode="json")

    def mark_all_read(self, user_id: str) -> int:
        count = self.repos.notifications.mark_all_read(user_id)
        logger.debug(f"Marked {count} notifications read for {user_id}")
        return count

    def delete(self, user_id: str, notification_id: str) -> None:
        self._owned(user_id, notification_id)
        self.repos.notifications.delete(notification_id)

    def clear_read(self, user_id: str) -> int:
        count = self.repos.notifications.delete_read(user_id)
        logger.info(f"Cleared {count} read notifications for {user_id}")
        return count
