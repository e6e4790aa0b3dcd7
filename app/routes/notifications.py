"""
Notification endpoints - the caller's inbox.
"""

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_identity, get_notification_service
from app.models.user import Identity
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.list_notifications(identity.user_id, unread_only=unread_only, page=page, limit=limit)


@router.put("/read-all")
def mark_all_read(
    identity: Identity = Depends(get_current_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    count = notifications.mark_all_read(identity.user_id)
    return {"message": "All notifications marked as read", "updated": count}


@router.delete("/clear-read")
def clear_read(
    identity: Identity = Depends(get_current_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    count = notifications.clear_read(identity.user_id)
    return {"message": "Read notifications cleared", "deleted": count}


@router.put("/{notification_id}/read")
def mark_read(
    notification_id: str,
    identity: Identity = Depends(get_current_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    notification = notifications.mark_read(identity.user_id, notification_id)
    return {"message": "Notification marked as read", "notification": notification}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: str,
    identity: Identity = Depends(get_current_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    notifications.delete(identity.user_id, notification_id)
    return {"message": "Notification deleted"}
