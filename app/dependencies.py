"""
FastAPI dependencies: service wiring and the authenticated caller.
"""

from typing import Optional

from fastapi import Depends, Header

from app.core.errors import AuthenticationError, AuthorizationError
from app.core.realtime import PresenceRouter, get_presence_router
from app.core.security import decode_access_token
from app.models.user import Identity
from app.repositories import Repositories, get_repositories
from app.services.alert_lifecycle import AlertLifecycleEngine
from app.services.alert_service import AlertService
from app.services.geocoding import GeocodingProvider, get_geocoding_provider
from app.services.notification_service import NotificationService
from app.services.outbox import SideEffectOutbox
from app.services.user_service import UserService


def get_repos() -> Repositories:
    return get_repositories()


def get_geocoder() -> GeocodingProvider:
    return get_geocoding_provider()


def get_router() -> PresenceRouter:
    return get_presence_router()


def get_lifecycle_engine(
    repos: Repositories = Depends(get_repos),
    geocoder: GeocodingProvider = Depends(get_geocoder),
) -> AlertLifecycleEngine:
    return AlertLifecycleEngine(repos, geocoder)


def get_alert_service(repos: Repositories = Depends(get_repos)) -> AlertService:
    return AlertService(repos)


def get_user_service(repos: Repositories = Depends(get_repos)) -> UserService:
    return UserService(repos)


def get_notification_service(repos: Repositories = Depends(get_repos)) -> NotificationService:
    return NotificationService(repos)


def get_outbox(
    repos: Repositories = Depends(get_repos),
    router: PresenceRouter = Depends(get_router),
) -> SideEffectOutbox:
    return SideEffectOutbox(repos.notifications, router)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_identity(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    users: UserService = Depends(get_user_service),
) -> Identity:
    """
    Resolve ``Authorization: Bearer <jwt>`` to a live, active account.
    The role comes from the stored user, never from the token.
    """
    token = bearer_token(authorization)
    if token is None:
        raise AuthenticationError("No token, authorization denied")
    payload = decode_access_token(token)
    return users.resolve_identity(payload["id"])


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Access denied. Admin only.")
    return identity
