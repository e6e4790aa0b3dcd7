"""
Alert read side: listing, lookup, nearby search and the JSON view of an
alert shared by REST responses and socket events.

Writes go through app.services.alert_lifecycle.
"""

import logging
from typing import Any, Dict, List, Optional

from app.core.errors import NotFoundError, ValidationError
from app.models.alert import Alert, OPEN_STATUSES
from app.models.user import Identity, RESPONDER_ROLES, User
from app.repositories.base import AlertCriteria, Repositories, UserRepository
from app.utils.geocoding import haversine_meters
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

NEARBY_RESULT_LIMIT = 50


def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "contact_number": user.contact_number,
        "role": user.role,
    }


def present_alert(alert: Alert, users: UserRepository) -> Dict[str, Any]:
    """
    JSON-safe alert with reporter and responder expanded to user summaries.
    Unknown users (deleted accounts) are kept as bare ``{"id": ...}``.
    """
    data = alert.model_dump(mode="json")
    ids = [uid for uid in (alert.reporter, alert.responder) if uid]
    people = {u.id: u for u in users.get_many(ids)}

    data["reporter"] = user_summary(people.get(alert.reporter)) or {"id": alert.reporter}
    if alert.responder:
        data["responder"] = user_summary(people.get(alert.responder)) or {"id": alert.responder}
    return data


class AlertService:
    """Read-only alert queries scoped to the caller."""

    def __init__(self, repos: Repositories):
        self.repos = repos

    def _visibility_branches(self, identity: Identity, base: AlertCriteria) -> List[AlertCriteria]:
        """
        Admin sees everything. Citizens and family see their own alerts plus
        alerts of users who list them as family. Responders see alerts of
        their type or assigned to them.
        """
        def narrowed(**overrides) -> AlertCriteria:
            return AlertCriteria(
                statuses=base.statuses,
                type=overrides.get("type", base.type),
                priority=base.priority,
                reporter_ids=overrides.get("reporter_ids", base.reporter_ids),
                responder_id=overrides.get("responder_id", base.responder_id),
            )

        if identity.is_admin:
            return [base]

        if identity.role in RESPONDER_ROLES:
            branches = [narrowed(responder_id=identity.user_id)]
            # A type filter for another role can never match "type == my role"
            if base.type in (None, identity.role):
                branches.insert(0, narrowed(type=identity.role))
            return branches

        reporter_ids = [identity.user_id]
        try:
            reporter_ids += [u.id for u in self.repos.users.find_by_family_member(identity.user_id)]
        except Exception as e:
            logger.error(f"Error expanding family reporter list for {identity.user_id}: {e}")
        return [narrowed(reporter_ids=reporter_ids)]

    def list_alerts(
        self,
        identity: Identity,
        status: Optional[str] = None,
        type: Optional[str] = None,
        priority: Optional[str] = None,
        page: int = 1,
        limit: int = 100,
    ) -> Dict[str, Any]:
        base = AlertCriteria(
            statuses=[status] if status else None,
            type=type,
            priority=priority,
        )
        alerts = self.repos.alerts.query_any(self._visibility_branches(identity, base))
        result = paginate(alerts, page, limit)
        return {
            "alerts": [present_alert(a, self.repos.users) for a in result["items"]],
            "total_pages": result["total_pages"],
            "current_page": result["current_page"],
            "total": result["total"],
        }

    def get_alert(self, alert_id: str) -> Dict[str, Any]:
        alert = self.repos.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("Alert not found")
        return present_alert(alert, self.repos.users)

    def nearby_alerts(self, type: str, latitude: float, longitude: float, radius_km: float = 10) -> List[Dict[str, Any]]:
        """
        Open (pending/active) alerts of ``type`` within ``radius_km``,
        nearest first, at most NEARBY_RESULT_LIMIT.
        """
        if radius_km <= 0:
            raise ValidationError("radius must be positive")

        candidates = self.repos.alerts.query(AlertCriteria(statuses=sorted(OPEN_STATUSES), type=type))
        max_meters = radius_km * 1000
        scored = []
        for alert in candidates:
            point = alert.location.coordinates
            distance = haversine_meters(latitude, longitude, point.latitude, point.longitude)
            if distance <= max_meters:
                scored.append((distance, alert))
        scored.sort(key=lambda pair: pair[0])

        results = []
        for distance, alert in scored[:NEARBY_RESULT_LIMIT]:
            data = present_alert(alert, self.repos.users)
            data["distance_km"] = round(distance / 1000, 3)
            results.append(data)
        return results

    def stats(self, identity: Identity) -> Dict[str, Any]:
        """Role-dependent dashboard aggregates."""
        alerts = self.repos.alerts
        active_statuses = ["pending", "active", "responded"]

        if identity.is_admin:
            all_alerts = alerts.query(AlertCriteria())
            all_users = self.repos.users.query()
            return {
                "total_users": len(all_users),
                "active_alerts": sum(1 for a in all_alerts if a.status in active_statuses),
                "resolved_alerts": sum(1 for a in all_alerts if a.status == "resolved"),
                "users_by_type": _count_by(all_users, "role"),
                "alerts_by_type": _count_by(all_alerts, "type"),
                "alerts_by_status": _count_by(all_alerts, "status"),
            }

        if identity.role in RESPONDER_ROLES:
            mine = alerts.query(AlertCriteria(responder_id=identity.user_id))
            pending = alerts.query(AlertCriteria(statuses=["pending"], type=identity.role))
            response_ms = [
                (a.response_time - a.created_at).total_seconds() * 1000
                for a in mine
                if a.response_time is not None
            ]
            return {
                "assigned_alerts": sum(1 for a in mine if a.status in ("responded", "active")),
                "resolved_alerts": sum(1 for a in mine if a.status == "resolved"),
                "pending_alerts": len(pending),
                "avg_response_time": sum(response_ms) / len(response_ms) if response_ms else 0,
            }

        own = alerts.query(AlertCriteria(reporter_ids=[identity.user_id]))
        return {
            "my_alerts": len(own),
            "active_alerts": sum(1 for a in own if a.status in active_statuses),
            "resolved_alerts": sum(1 for a in own if a.status == "resolved"),
        }


def _count_by(items, attribute: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for item in items:
        key = getattr(item, attribute)
        counts[key] = counts.get(key, 0) + 1
    return counts

