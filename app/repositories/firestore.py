"""
Firestore-backed repositories.

Collections: ``alerts``, ``users``, ``notifications``. Document IDs are
Firestore auto-IDs except for the synthetic device reporter, which lives
under a fixed ID so provisioning is create-if-absent.

Results are sorted in Python rather than with order_by() so that no
composite indexes are needed for the filter combinations we use.
"""

import logging
from typing import Dict, Iterable, List, Optional, Type, TypeVar

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from pydantic import BaseModel

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
from app.utils.firestore_helpers import chunked, where_filter

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Firestore caps "in" filters at 30 values and batches at 500 writes
IN_FILTER_LIMIT = 30
BATCH_LIMIT = 500


def _to_document(model: BaseModel) -> Dict:
    return model.model_dump(exclude={"id"})


def _from_snapshot(snapshot, model_cls: Type[ModelT]) -> Optional[ModelT]:
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return model_cls(**data)


class FirestoreAlertRepository(AlertRepository):

    def __init__(self, db):
        self.db = db
        self.collection = db.collection("alerts")

    def new_id(self) -> str:
        return self.collection.document().id

    def get(self, alert_id: str) -> Optional[Alert]:
        return _from_snapshot(self.collection.document(alert_id).get(), Alert)

    def create(self, alert: Alert) -> Alert:
        try:
            self.collection.document(alert.id).create(_to_document(alert))
        except AlreadyExists:
            raise ConflictError(f"Alert {alert.id} already exists")
        logger.info(f"Alert saved to Firestore: {alert.id}")
        return alert

    def save(self, alert: Alert, expected_version: int) -> Alert:
        ref = self.collection.document(alert.id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _write(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Alert not found")
            current_version = (snapshot.to_dict() or {}).get("version", 1)
            if current_version != expected_version:
                logger.warning(
                    f"Stale write on alert {alert.id}: expected v{expected_version}, found v{current_version}"
                )
                raise ConflictError("Alert was modified by another request, please retry")
            stored = alert.model_copy(deep=True)
            stored.version = expected_version + 1
            transaction.set(ref, _to_document(stored))
            return stored

        return _write(transaction)

    def delete(self, alert_id: str) -> bool:
        ref = self.collection.document(alert_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def query(self, criteria: AlertCriteria) -> List[Alert]:
        base = self.collection
        if criteria.type is not None:
            base = where_filter(base, "type", "==", criteria.type)
        if criteria.priority is not None:
            base = where_filter(base, "priority", "==", criteria.priority)
        if criteria.responder_id is not None:
            base = where_filter(base, "responder", "==", criteria.responder_id)
        if criteria.statuses is not None and len(criteria.statuses) == 1:
            base = where_filter(base, "status", "==", criteria.statuses[0])

        if criteria.reporter_ids is not None:
            queries = [
                where_filter(base, "reporter", "in", chunk)
                for chunk in chunked(criteria.reporter_ids, IN_FILTER_LIMIT)
            ]
        else:
            queries = [base]

        alerts = []
        for query in queries:
            for snapshot in query.stream():
                alert = _from_snapshot(snapshot, Alert)
                # Multi-status filters are applied here
                if alert is not None and criteria.matches(alert):
                    alerts.append(alert)
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)


class FirestoreUserRepository(UserRepository):

    def __init__(self, db):
        self.db = db
        self.collection = db.collection("users")

    def new_id(self) -> str:
        return self.collection.document().id

    def get(self, user_id: str) -> Optional[User]:
        return _from_snapshot(self.collection.document(user_id).get(), User)

    def get_many(self, user_ids: Iterable[str]) -> List[User]:
        refs = [self.collection.document(uid) for uid in user_ids]
        if not refs:
            return []
        users = [_from_snapshot(snapshot, User) for snapshot in self.db.get_all(refs)]
        return [u for u in users if u is not None]

    def get_by_email(self, email: str) -> Optional[User]:
        query = where_filter(self.collection, "email", "==", email.strip().lower()).limit(1)
        docs = list(query.stream())
        return _from_snapshot(docs[0], User) if docs else None

    def create(self, user: User) -> User:
        # Not transactional; Firestore has no unique constraints
        if self.get_by_email(user.email) is not None:
            raise ConflictError("User already exists with this email")
        self.collection.document(user.id).set(_to_document(user))
        logger.info(f"User created: {user.id}")
        return user

    def get_or_create(self, user: User) -> User:
        ref = self.collection.document(user.id)
        try:
            ref.create(_to_document(user))
            logger.info(f"Provisioned user {user.id}")
            return user
        except AlreadyExists:
            return _from_snapshot(ref.get(), User)

    def update(self, user_id: str, fields: Dict) -> Optional[User]:
        ref = self.collection.document(user_id)
        current = _from_snapshot(ref.get(), User)
        if current is None:
            return None
        data = current.model_dump()
        data.update(fields)
        updated = User(**data)
        ref.set(_to_document(updated))
        return updated

    def delete(self, user_id: str) -> bool:
        ref = self.collection.document(user_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def query(self, role: Optional[str] = None, status: Optional[str] = None) -> List[User]:
        query = self.collection
        if role is not None:
            query = where_filter(query, "role", "==", role)
        if status is not None:
            query = where_filter(query, "status", "==", status)
        users = [_from_snapshot(snapshot, User) for snapshot in query.stream()]
        return sorted((u for u in users if u is not None), key=lambda u: u.created_at, reverse=True)

    def find_by_family_member(self, user_id: str) -> List[User]:
        query = where_filter(self.collection, "family_members", "array_contains", user_id)
        users = [_from_snapshot(snapshot, User) for snapshot in query.stream()]
        return [u for u in users if u is not None]


class FirestoreNotificationRepository(NotificationRepository):

    def __init__(self, db):
        self.db = db
        self.collection = db.collection("notifications")

    def create(self, user_id: str, alert_id: str, type: str, title: str, message: str) -> Notification:
        ref = self.collection.document()
        notification = Notification(
            id=ref.id, user=user_id, alert=alert_id, type=type, title=title, message=message
        )
        ref.set(_to_document(notification))
        return notification

    def get(self, notification_id: str) -> Optional[Notification]:
        return _from_snapshot(self.collection.document(notification_id).get(), Notification)

    def query(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        query = where_filter(self.collection, "user", "==", user_id)
        if unread_only:
            query = where_filter(query, "read", "==", False)
        found = [_from_snapshot(snapshot, Notification) for snapshot in query.stream()]
        return sorted((n for n in found if n is not None), key=lambda n: n.created_at, reverse=True)

    def mark_read(self, notification_id: str) -> Optional[Notification]:
        ref = self.collection.document(notification_id)
        if not ref.get().exists:
            return None
        ref.update({"read": True})
        return _from_snapshot(ref.get(), Notification)

    def mark_all_read(self, user_id: str) -> int:
        unread = self.query(user_id, unread_only=True)
        for chunk in chunked(unread, BATCH_LIMIT):
            batch = self.db.batch()
            for notification in chunk:
                batch.update(self.collection.document(notification.id), {"read": True})
            batch.commit()
        return len(unread)

    def delete(self, notification_id: str) -> bool:
        ref = self.collection.document(notification_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def delete_read(self, user_id: str) -> int:
        query = where_filter(where_filter(self.collection, "user", "==", user_id), "read", "==", True)
        snapshots = list(query.stream())
        for chunk in chunked(snapshots, BATCH_LIMIT):
            batch = self.db.batch()
            for snapshot in chunk:
                batch.delete(snapshot.reference)
            batch.commit()
        return len(snapshots)


def create_firestore_repositories(db) -> Repositories:
    return Repositories(
        alerts=FirestoreAlertRepository(db),
        users=FirestoreUserRepository(db),
        notifications=FirestoreNotificationRepository(db),
    )
