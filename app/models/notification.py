"""
Notification models.
A notification is the durable copy of an event pushed to one user.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.models.base import utcnow


class NotificationType(str, Enum):
    ALERT = "alert"
    FAMILY_ALERT = "family_alert"
    ALERT_RESPONDED = "alert_responded"
    ALERT_RESOLVED = "alert_resolved"


class Notification(BaseModel):
    id: str = Field(..., description="Document ID")
    user: str = Field(..., description="Recipient user ID")
    alert: str = Field(..., description="Triggering alert ID")
    type: NotificationType
    title: str
    message: str
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True
        validate_assignment = True
