"""
User endpoints - own profile and admin user management.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import (
    get_alert_service,
    get_current_identity,
    get_user_service,
    require_admin,
)
from app.models.user import (
    Identity,
    LocationUpdate,
    PasswordChange,
    ProfileUpdate,
    StatusUpdate,
    UserRole,
    UserStatus,
)
from app.services.alert_service import AlertService
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile")
def get_profile(
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    return users.get_profile(identity.user_id)


@router.put("/profile")
def update_profile(
    changes: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    user = users.update_profile(identity.user_id, changes)
    return {"message": "Profile updated successfully", "user": user}


@router.put("/change-password")
def change_password(
    request: PasswordChange,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    users.change_password(identity.user_id, request)
    return {"message": "Password changed successfully"}


@router.put("/location")
def update_location(
    request: LocationUpdate,
    identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
):
    location = users.update_location(identity.user_id, request)
    return {"message": "Location updated successfully", "location": location}


@router.get("/stats")
def get_stats(
    identity: Identity = Depends(get_current_identity),
    alerts: AlertService = Depends(get_alert_service),
):
    """Dashboard numbers; the shape depends on the caller's role."""
    return alerts.stats(identity)


# Admin only

@router.get("")
def list_users(
    role: Optional[UserRole] = Query(None),
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Identity = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    return users.list_users(
        role=role.value if role else None,
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
    )


@router.get("/{user_id}")
def get_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    return users.get_profile(user_id)


@router.put("/{user_id}/status")
def update_user_status(
    user_id: str,
    request: StatusUpdate,
    admin: Identity = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    user = users.set_status(user_id, request.status.value)
    return {"message": "User status updated successfully", "user": user}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    users.delete_user(admin, user_id)
    return {"message": "User deleted successfully"}
