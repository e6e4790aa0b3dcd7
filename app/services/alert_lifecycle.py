"""
Alert Lifecycle Engine - state machine, transition guards and side effects.

DESIGN PRINCIPLES:
- pending → active → responded → resolved; cancelled from pending/active only
- resolved and cancelled are terminal
- Every transition appends exactly one timeline entry
- A rejected transition writes nothing
- Writes carry the version that was read; a stale write is a ConflictError
- Side effects are returned, never performed here (see app.services.outbox)
"""

import logging
from typing import Dict, List, Optional

from app.core.errors import AlertoError, AuthorizationError, ConflictError, NotFoundError, UnexpectedError
from app.core.settings import settings
from app.models.alert import (
    Alert,
    AlertCreate,
    AlertLocation,
    AlertPriority,
    AlertStatus,
    AlertUpdate,
    DeviceAlertCreate,
    OPEN_STATUSES,
    TimelineEntry,
)
from app.models.base import GeoPoint, utcnow
from app.models.notification import NotificationType
from app.models.user import Identity, User, UserRole, UserStatus
from app.repositories.base import Repositories
from app.services.alert_service import present_alert
from app.services.geocoding import GeocodingProvider
from app.services.side_effects import (
    EVENT_ALERT_RESOLVED,
    EVENT_ALERT_RESPONDED,
    EVENT_ALERT_UPDATED,
    EVENT_NEW_ALERT,
    EVENT_NEW_ALERT_BROADCAST,
    EventEffect,
    NotificationEffect,
    SideEffect,
    TransitionResult,
)
from app.utils.geocoding import coordinate_address, haversine_meters

logger = logging.getLogger(__name__)


class AlertLifecycleEngine:
    """
    Applies alert transitions on behalf of a verified caller.

    Guard order per transition:
    - respond: caller role, then state
    - resolve: caller ownership, then state
    - cancel: responder already assigned, then caller ownership, then state
    """

    # {from_status: [to_status, ...]} for status-changing transitions
    ALLOWED_TRANSITIONS: Dict[str, List[str]] = {
        AlertStatus.PENDING.value: [
            AlertStatus.ACTIVE.value,
            AlertStatus.RESPONDED.value,
            AlertStatus.RESOLVED.value,
            AlertStatus.CANCELLED.value,
        ],
        AlertStatus.ACTIVE.value: [
            AlertStatus.RESPONDED.value,
            AlertStatus.RESOLVED.value,
            AlertStatus.CANCELLED.value,
        ],
        AlertStatus.RESPONDED.value: [AlertStatus.RESOLVED.value],
        AlertStatus.RESOLVED.value: [],
        AlertStatus.CANCELLED.value: [],
    }

    def __init__(
        self,
        repos: Repositories,
        geocoder: GeocodingProvider,
        fanout_limit: Optional[int] = None,
    ):
        self.repos = repos
        self.geocoder = geocoder
        self.fanout_limit = fanout_limit if fanout_limit is not None else settings.RESPONDER_FANOUT_LIMIT

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.ALLOWED_TRANSITIONS.get(from_status, [])

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(self, identity: Identity, data: AlertCreate) -> TransitionResult:
        """
        Create an alert as ``identity`` (status pending) and fan it out to
        matching responders, the reporter's family and the live map.
        """
        now = utcnow()
        alert = Alert(
            id=self.repos.alerts.new_id(),
            title=data.title,
            description=data.description,
            type=data.type,
            priority=data.priority,
            status=AlertStatus.PENDING,
            location=data.location,
            reporter=identity.user_id,
            notes=data.notes,
            images=data.images,
            timeline=[TimelineEntry(action="Alert created", user=identity.user_id, timestamp=now)],
            created_at=now,
            updated_at=now,
        )
        alert = self._insert(alert)
        logger.info(f"Alert {alert.id} created by {identity.user_id} ({alert.type}, {alert.priority})")

        payload = present_alert(alert, self.repos.users)
        effects: List[SideEffect] = []
        label = alert.title or f"{alert.type} emergency"

        responders = self._nearest_responders(alert)
        for responder in responders:
            effects.append(EventEffect(
                event=EVENT_NEW_ALERT,
                payload={"alert": payload, "message": f"New {alert.type} alert in your area"},
                user_id=responder.id,
            ))
            effects.append(NotificationEffect(
                user_id=responder.id,
                alert_id=alert.id,
                type=NotificationType.ALERT.value,
                title=f"New {alert.type} alert",
                message=f"New {alert.type} alert: {label}",
                push=False,
            ))

        effects.extend(self._family_effects(identity, alert, payload, label))

        # Map display; independent of the targeted copies above
        effects.append(EventEffect(event=EVENT_NEW_ALERT_BROADCAST, payload=payload))

        return TransitionResult(alert=payload, effects=effects, notified_responders=len(responders))

    def create_from_device(self, data: DeviceAlertCreate) -> TransitionResult:
        """
        Create an alert reported by an unauthenticated sensor.

        The alert starts ``active`` (automated detections count as confirmed),
        is attributed to the shared device reporter, and gets a reverse-geocoded
        address or a coordinate literal when geocoding is unavailable.
        """
        reporter = self.device_reporter()
        address = self._resolve_address(data.latitude, data.longitude)
        now = utcnow()

        alert = Alert(
            id=self.repos.alerts.new_id(),
            title=f"IoT {data.type.value} alert",
            description="Automatic alert from IoT device",
            type=data.type,
            priority=AlertPriority.CRITICAL,
            status=AlertStatus.ACTIVE,
            location=AlertLocation(
                address=address,
                coordinates=GeoPoint.from_lat_lng(data.latitude, data.longitude),
            ),
            reporter=reporter.id,
            timeline=[TimelineEntry(
                action="Alert created from IoT (auto-active)",
                user=reporter.id,
                timestamp=now,
                notes="Initial status set to active from IoT device",
            )],
            created_at=now,
            updated_at=now,
        )
        alert = self._insert(alert)
        logger.info(f"Device alert {alert.id} created at ({data.latitude}, {data.longitude})")

        payload = present_alert(alert, self.repos.users)
        return TransitionResult(
            alert=payload,
            effects=[EventEffect(event=EVENT_NEW_ALERT_BROADCAST, payload=payload)],
        )

    def device_reporter(self) -> User:
        """Look up or provision the synthetic device account under its fixed ID."""
        return self.repos.users.get_or_create(User(
            id=settings.DEVICE_REPORTER_ID,
            name=settings.DEVICE_REPORTER_NAME,
            email=settings.DEVICE_REPORTER_EMAIL,
            # Empty hash never verifies, so the account cannot log in
            password_hash="",
            role=UserRole.CITIZEN,
            status=UserStatus.ACTIVE,
        ))

    def _resolve_address(self, latitude: float, longitude: float) -> str:
        try:
            result = self.geocoder.reverse_geocode(latitude, longitude) or {}
            address = result.get("formatted_address")
        except Exception as e:
            logger.warning(f"Reverse geocoding failed for ({latitude}, {longitude}): {e}")
            address = None
        return address or coordinate_address(latitude, longitude)

    def _nearest_responders(self, alert: Alert) -> List[User]:
        """Active users whose role matches the alert type, nearest first, capped."""
        try:
            candidates = self.repos.users.query(role=alert.type, status=UserStatus.ACTIVE.value)
        except Exception as e:
            logger.error(f"Responder lookup failed for alert {alert.id}: {e}", exc_info=True)
            return []

        point = alert.location.coordinates
        candidates.sort(key=lambda u: haversine_meters(
            point.latitude, point.longitude, u.location.latitude, u.location.longitude
        ))
        return candidates[:self.fanout_limit]

    def _family_effects(self, identity: Identity, alert: Alert, payload: Dict, label: str) -> List[SideEffect]:
        try:
            reporter = self.repos.users.get(identity.user_id)
            if reporter is None or not reporter.family_members:
                return []
            family = self.repos.users.get_many(reporter.family_members)
        except Exception as e:
            logger.error(f"Error notifying family members for alert {alert.id}: {e}", exc_info=True)
            return []

        effects: List[SideEffect] = []
        for member in family:
            effects.append(NotificationEffect(
                user_id=member.id,
                alert_id=alert.id,
                type=NotificationType.FAMILY_ALERT.value,
                title=f"Family alert from {reporter.name}",
                message=f"{reporter.name} sent an emergency alert: {label}",
            ))
            effects.append(EventEffect(event=EVENT_NEW_ALERT_BROADCAST, payload=payload, user_id=member.id))
        return effects

    # ------------------------------------------------------------------
    # transitions on existing alerts
    # ------------------------------------------------------------------

    def _load(self, alert_id: str) -> Alert:
        alert = self.repos.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("Alert not found")
        return alert

    def _insert(self, alert: Alert) -> Alert:
        try:
            return self.repos.alerts.create(alert)
        except AlertoError:
            raise
        except Exception as e:
            logger.error(f"Failed to store alert {alert.id}: {e}", exc_info=True)
            raise UnexpectedError("Failed to save alert", error=str(e))

    def _commit(self, alert: Alert, expected_version: int) -> Alert:
        alert.updated_at = utcnow()
        try:
            return self.repos.alerts.save(alert, expected_version=expected_version)
        except AlertoError:
            raise
        except Exception as e:
            logger.error(f"Failed to update alert {alert.id}: {e}", exc_info=True)
            raise UnexpectedError("Failed to update alert", error=str(e))

    def respond(self, identity: Identity, alert_id: str) -> TransitionResult:
        alert = self._load(alert_id)
        version = alert.version

        if identity.role != alert.type and not identity.is_admin:
            raise AuthorizationError("Not authorized to respond to this alert type")
        if not self.is_valid_transition(alert.status, AlertStatus.RESPONDED.value):
            raise ConflictError("Alert is not available for response")

        now = utcnow()
        alert.responder = identity.user_id
        alert.status = AlertStatus.RESPONDED
        alert.response_time = now
        alert.timeline.append(TimelineEntry(
            action="Responder assigned and en route", user=identity.user_id, timestamp=now
        ))
        alert = self._commit(alert, version)
        logger.info(f"Alert {alert.id} responded by {identity.user_id}")

        payload = present_alert(alert, self.repos.users)
        return TransitionResult(alert=payload, effects=[
            EventEffect(
                event=EVENT_ALERT_RESPONDED,
                payload={"alert": payload, "message": "A responder is on the way"},
                user_id=alert.reporter,
            ),
            NotificationEffect(
                user_id=alert.reporter,
                alert_id=alert.id,
                type=NotificationType.ALERT_RESPONDED.value,
                title="Alert Responded",
                message=f"Your alert has been responded to by {identity.name}",
            ),
        ])

    def resolve(self, identity: Identity, alert_id: str, notes: Optional[str] = None) -> TransitionResult:
        alert = self._load(alert_id)
        version = alert.version

        if alert.responder != identity.user_id and not identity.is_admin:
            raise AuthorizationError("Not authorized to resolve this alert")
        if not self.is_valid_transition(alert.status, AlertStatus.RESOLVED.value):
            raise ConflictError(f"Cannot resolve alert with status: {alert.status}")

        now = utcnow()
        if alert.responder is None:
            # Admin closing an unanswered alert becomes its responder
            alert.responder = identity.user_id
        alert.status = AlertStatus.RESOLVED
        alert.resolved_time = now
        alert.timeline.append(TimelineEntry(
            action="Alert resolved", user=identity.user_id, timestamp=now, notes=notes
        ))
        alert = self._commit(alert, version)
        logger.info(f"Alert {alert.id} resolved by {identity.user_id}")

        payload = present_alert(alert, self.repos.users)
        message = "Your alert has been resolved"
        return TransitionResult(alert=payload, effects=[
            EventEffect(
                event=EVENT_ALERT_RESOLVED,
                payload={"alert": payload, "message": message},
                user_id=alert.reporter,
            ),
            EventEffect(
                event=EVENT_ALERT_UPDATED,
                payload={"alert": payload, "message": message},
                user_id=alert.reporter,
            ),
            NotificationEffect(
                user_id=alert.reporter,
                alert_id=alert.id,
                type=NotificationType.ALERT_RESOLVED.value,
                title="Alert Resolved",
                message=message,
            ),
        ])

    def cancel(self, identity: Identity, alert_id: str) -> TransitionResult:
        alert = self._load(alert_id)
        version = alert.version

        if alert.responder is not None:
            raise ConflictError(
                "Cannot cancel alert - a responder has already been assigned. Please contact them directly."
            )
        if alert.reporter != identity.user_id:
            raise AuthorizationError("Only the reporter can cancel this alert")
        if alert.status not in OPEN_STATUSES:
            raise ConflictError(f"Cannot cancel alert with status: {alert.status}")

        now = utcnow()
        alert.status = AlertStatus.CANCELLED
        alert.timeline.append(TimelineEntry(
            action="Alert cancelled by reporter",
            user=identity.user_id,
            timestamp=now,
            notes="Reporter cancelled the alert before response",
        ))
        alert = self._commit(alert, version)
        logger.info(f"Alert {alert.id} cancelled by reporter")

        return TransitionResult(alert=present_alert(alert, self.repos.users))

    def update(self, identity: Identity, alert_id: str, changes: AlertUpdate) -> TransitionResult:
        """
        Merge descriptive fields. Appends a timeline entry only when the
        caller supplies one.
        """
        alert = self._load(alert_id)
        version = alert.version

        allowed = (
            alert.reporter == identity.user_id
            or (alert.responder is not None and alert.responder == identity.user_id)
            or identity.is_admin
        )
        if not allowed:
            raise AuthorizationError("Not authorized to update this alert")

        fields = changes.model_dump(exclude_unset=True, exclude={"timeline_entry"})
        for name, value in fields.items():
            if value is not None:
                setattr(alert, name, value)

        if changes.timeline_entry is not None:
            alert.timeline.append(TimelineEntry(
                action=changes.timeline_entry.action,
                user=identity.user_id,
                timestamp=utcnow(),
                notes=changes.timeline_entry.notes,
            ))

        alert = self._commit(alert, version)
        logger.info(f"Alert {alert.id} updated by {identity.user_id}: {sorted(fields)}")
        return TransitionResult(alert=present_alert(alert, self.repos.users))

    def delete(self, identity: Identity, alert_id: str) -> None:
        alert = self._load(alert_id)
        if alert.reporter != identity.user_id and not identity.is_admin:
            raise AuthorizationError("Not authorized to delete this alert")
        if not self.repos.alerts.delete(alert_id):
            raise NotFoundError("Alert not found")
        logger.info(f"Alert {alert_id} deleted by {identity.user_id}")
