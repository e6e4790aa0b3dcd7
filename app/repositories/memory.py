"""
In-memory document store.

Used when USE_MOCK_DB is set (local development without Firebase
credentials) and by the test suite. Every read and write hands out deep
copies so callers can never mutate stored state without going through the
repository, the same contract Firestore gives.
"""

import logging
import threading
import uuid
from typing import Dict, Iterable, List, Optional

from app.core.errors import ConflictError, NotFoundError
from app.models.alert import Alert
from app.models.notification import Notification
from app.models.user import User
from app.repositories.base import (
    AlertCriteria,
    AlertRepository,
    NotificationRepository,
    Repositories,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryAlertRepository(AlertRepository):

    def __init__(self):
        self._alerts: Dict[str, Alert] = {}
        self._lock = threading.Lock()

    def new_id(self) -> str:
        return _new_id()

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            alert = self._alerts.get(alert_id)
            return alert.model_copy(deep=True) if alert else None

    def create(self, alert: Alert) -> Alert:
        with self._lock:
            if alert.id in self._alerts:
                raise ConflictError(f"Alert {alert.id} already exists")
            self._alerts[alert.id] = alert.model_copy(deep=True)
        return alert.model_copy(deep=True)

    def save(self, alert: Alert, expected_version: int) -> Alert:
        with self._lock:
            current = self._alerts.get(alert.id)
            if current is None:
                raise NotFoundError("Alert not found")
            if current.version != expected_version:
                logger.warning(
                    f"Stale write on alert {alert.id}: expected v{expected_version}, found v{current.version}"
                )
                raise ConflictError("Alert was modified by another request, please retry")
            stored = alert.model_copy(deep=True)
            stored.version = expected_version + 1
            self._alerts[alert.id] = stored
            return stored.model_copy(deep=True)

    def delete(self, alert_id: str) -> bool:
        with self._lock:
            return self._alerts.pop(alert_id, None) is not None

    def query(self, criteria: AlertCriteria) -> List[Alert]:
        with self._lock:
            matches = [a.model_copy(deep=True) for a in self._alerts.values() if criteria.matches(a)]
        return sorted(matches, key=lambda a: a.created_at, reverse=True)


class InMemoryUserRepository(UserRepository):

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()

    def new_id(self) -> str:
        return _new_id()

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy(deep=True) if user else None

    def get_many(self, user_ids: Iterable[str]) -> List[User]:
        with self._lock:
            return [self._users[uid].model_copy(deep=True) for uid in user_ids if uid in self._users]

    def get_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return user.model_copy(deep=True)
        return None

    def create(self, user: User) -> User:
        with self._lock:
            if any(u.email == user.email for u in self._users.values()):
                raise ConflictError("User already exists with this email")
            self._users[user.id] = user.model_copy(deep=True)
        return user.model_copy(deep=True)

    def get_or_create(self, user: User) -> User:
        with self._lock:
            existing = self._users.get(user.id)
            if existing is None:
                existing = user.model_copy(deep=True)
                self._users[user.id] = existing
                logger.info(f"Provisioned user {user.id}")
            return existing.model_copy(deep=True)

    def update(self, user_id: str, fields: Dict) -> Optional[User]:
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                return None
            data = current.model_dump()
            data.update(fields)
            updated = User(**data)
            self._users[user_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None

    def query(self, role: Optional[str] = None, status: Optional[str] = None) -> List[User]:
        with self._lock:
            matches = [
                u.model_copy(deep=True)
                for u in self._users.values()
                if (role is None or u.role == role) and (status is None or u.status == status)
            ]
        return sorted(matches, key=lambda u: u.created_at, reverse=True)

    def find_by_family_member(self, user_id: str) -> List[User]:
        with self._lock:
            return [u.model_copy(deep=True) for u in self._users.values() if user_id in u.family_members]


class InMemoryNotificationRepository(NotificationRepository):

    def __init__(self):
        self._notifications: Dict[str, Notification] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, alert_id: str, type: str, title: str, message: str) -> Notification:
        notification = Notification(
            id=_new_id(), user=user_id, alert=alert_id, type=type, title=title, message=message
        )
        with self._lock:
            self._notifications[notification.id] = notification
        return notification.model_copy(deep=True)

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            found = self._notifications.get(notification_id)
            return found.model_copy(deep=True) if found else None

    def query(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        with self._lock:
            matches = [
                n.model_copy(deep=True)
                for n in self._notifications.values()
                if n.user == user_id and (not unread_only or not n.read)
            ]
        return sorted(matches, key=lambda n: n.created_at, reverse=True)

    def mark_read(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            found = self._notifications.get(notification_id)
            if found is None:
                return None
            found.read = True
            return found.model_copy(deep=True)

    def mark_all_read(self, user_id: str) -> int:
        count = 0
        with self._lock:
            for n in self._notifications.values():
                if n.user == user_id and not n.read:
                    n.read = True
                    count += 1
        return count

    def delete(self, notification_id: str) -> bool:
        with self._lock:
            return self._notifications.pop(notification_id, None) is not None

    def delete_read(self, user_id: str) -> int:
        with self._lock:
            doomed = [nid for nid, n in self._notifications.items() if n.user == user_id and n.read]
            for nid in doomed:
                del self._notifications[nid]
        return len(doomed)


def create_memory_repositories() -> Repositories:
    return Repositories(
        alerts=InMemoryAlertRepository(),
        users=InMemoryUserRepository(),
        notifications=InMemoryNotificationRepository(),
    )
