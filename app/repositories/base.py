"""
Repository interfaces for the document store.

Two implementations exist: Firestore (production) and an in-memory store
(USE_MOCK_DB, local development and tests). Services only see these
interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from app.models.alert import Alert
from app.models.notification import Notification
from app.models.user import User


@dataclass
class AlertCriteria:
    """Conjunctive alert filter. ``None`` means "any"."""
    statuses: Optional[List[str]] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    reporter_ids: Optional[List[str]] = None
    responder_id: Optional[str] = None

    def matches(self, alert: Alert) -> bool:
        if self.statuses is not None and alert.status not in self.statuses:
            return False
        if self.type is not None and alert.type != self.type:
            return False
        if self.priority is not None and alert.priority != self.priority:
            return False
        if self.reporter_ids is not None and alert.reporter not in self.reporter_ids:
            return False
        if self.responder_id is not None and alert.responder != self.responder_id:
            return False
        return True


class AlertRepository(ABC):

    @abstractmethod
    def new_id(self) -> str:
        """Reserve a fresh document ID."""

    @abstractmethod
    def get(self, alert_id: str) -> Optional[Alert]:
        ...

    @abstractmethod
    def create(self, alert: Alert) -> Alert:
        ...

    @abstractmethod
    def save(self, alert: Alert, expected_version: int) -> Alert:
        """
        Replace the stored alert if its version still equals
        ``expected_version``. The stored copy gets ``expected_version + 1``.

        Raises:
            NotFoundError: the alert no longer exists
            ConflictError: someone else wrote first
        """

    @abstractmethod
    def delete(self, alert_id: str) -> bool:
        ...

    @abstractmethod
    def query(self, criteria: AlertCriteria) -> List[Alert]:
        """All matching alerts, newest first."""

    def query_any(self, branches: Iterable[AlertCriteria]) -> List[Alert]:
        """Union of several criteria (OR), de-duplicated, newest first."""
        seen: Dict[str, Alert] = {}
        for criteria in branches:
            for alert in self.query(criteria):
                seen.setdefault(alert.id, alert)
        return sorted(seen.values(), key=lambda a: a.created_at, reverse=True)


class UserRepository(ABC):

    @abstractmethod
    def new_id(self) -> str:
        ...

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def get_many(self, user_ids: Iterable[str]) -> List[User]:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def create(self, user: User) -> User:
        """Raises ConflictError if the email is already registered."""

    @abstractmethod
    def get_or_create(self, user: User) -> User:
        """
        Return the user stored under ``user.id``, creating it from ``user``
        if absent. Must be idempotent under concurrent first use.
        """

    @abstractmethod
    def update(self, user_id: str, fields: Dict) -> Optional[User]:
        ...

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        ...

    @abstractmethod
    def query(self, role: Optional[str] = None, status: Optional[str] = None) -> List[User]:
        """Matching users, newest first."""

    @abstractmethod
    def find_by_family_member(self, user_id: str) -> List[User]:
        """Users that list ``user_id`` among their family members."""


class NotificationRepository(ABC):

    @abstractmethod
    def create(self, user_id: str, alert_id: str, type: str, title: str, message: str) -> Notification:
        ...

    @abstractmethod
    def get(self, notification_id: str) -> Optional[Notification]:
        ...

    @abstractmethod
    def query(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        """The user's notifications, newest first."""

    @abstractmethod
    def mark_read(self, notification_id: str) -> Optional[Notification]:
        ...

    @abstractmethod
    def mark_all_read(self, user_id: str) -> int:
        ...

    @abstractmethod
    def delete(self, notification_id: str) -> bool:
        ...

    @abstractmethod
    def delete_read(self, user_id: str) -> int:
        ...


@dataclass
class Repositories:
    """Bundle handed to services."""
    alerts: AlertRepository
    users: UserRepository
    notifications: NotificationRepository
