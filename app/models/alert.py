"""
Pydantic models for alerts.
These models handle validation for alert submission and the stored alert document.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.base import GeoPoint, utcnow


class AlertType(str, Enum):
    """Alert type; decides which responder role may act on it."""
    POLICE = "police"
    HOSPITAL = "hospital"
    FIRE = "fire"
    FAMILY = "family"


class AlertStatus(str, Enum):
    """
    Alert lifecycle states.

    pending → active → responded → resolved
    cancelled is reachable from pending/active only.
    """
    PENDING = "pending"
    ACTIVE = "active"
    RESPONDED = "responded"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class AlertPriority(str, Enum):
    """Informational only, never affects transitions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Documents store raw values (use_enum_values), so these hold values too
OPEN_STATUSES = frozenset({AlertStatus.PENDING.value, AlertStatus.ACTIVE.value})


class AlertLocation(BaseModel):
    """Address text plus point."""
    address: str = Field(..., min_length=1, max_length=500, description="Human-readable address")
    coordinates: GeoPoint


class TimelineEntry(BaseModel):
    """One append-only timeline record."""
    action: str
    user: Optional[str] = Field(None, description="Acting user ID")
    timestamp: datetime = Field(default_factory=utcnow)
    notes: Optional[str] = None


class Alert(BaseModel):
    """Stored alert document."""
    id: str = Field(..., description="Document ID")
    title: Optional[str] = None
    description: Optional[str] = None
    type: AlertType
    status: AlertStatus = AlertStatus.PENDING
    priority: AlertPriority = AlertPriority.MEDIUM
    location: AlertLocation
    reporter: str = Field(..., description="Reporter user ID")
    responder: Optional[str] = Field(None, description="Responder user ID (set once)")
    notes: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    response_time: Optional[datetime] = None
    resolved_time: Optional[datetime] = None
    timeline: List[TimelineEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = Field(default=1, description="Optimistic concurrency counter")

    class Config:
        use_enum_values = True
        validate_assignment = True


class AlertCreate(BaseModel):
    """Alert submitted by an authenticated user."""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    type: AlertType
    priority: AlertPriority = AlertPriority.MEDIUM
    location: AlertLocation
    notes: Optional[str] = Field(None, max_length=2000)
    images: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Break-in at Penafrancia Ave",
                "description": "Two men forced open a store shutter",
                "type": "police",
                "priority": "high",
                "location": {
                    "address": "Penafrancia Ave, Naga City",
                    "coordinates": {"type": "Point", "coordinates": [123.1948, 13.6192]},
                },
            }
        }
        extra = "ignore"


class DeviceAlertCreate(BaseModel):
    """Alert submitted by an automated sensor without a credential."""
    type: AlertType
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    class Config:
        extra = "ignore"


class TimelineNote(BaseModel):
    """Caller-supplied timeline entry carried by an update."""
    action: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)


class AlertUpdate(BaseModel):
    """
    Free-form edit. Only descriptive fields are editable; lifecycle fields
    (status, reporter, responder, times) change through transitions only.
    """
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Optional[AlertPriority] = None
    location: Optional[AlertLocation] = None
    notes: Optional[str] = Field(None, max_length=2000)
    images: Optional[List[str]] = None
    timeline_entry: Optional[TimelineNote] = None

    class Config:
        extra = "ignore"


class AlertResolve(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)
