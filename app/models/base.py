"""
Shared pydantic building blocks.

DESIGN PRINCIPLE:
- Models reflect stored document structure, not business rules
- Lifecycle rules live in app.services.alert_lifecycle
"""

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current time; every stored timestamp goes through this."""
    return datetime.now(timezone.utc)


class GeoPoint(BaseModel):
    """GeoJSON point. Coordinates are ``[longitude, latitude]``."""
    type: str = Field(default="Point", description="GeoJSON geometry type")
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator("coordinates")
    @classmethod
    def _check_coordinates(cls, value: List[float]) -> List[float]:
        if len(value) != 2:
            raise ValueError("coordinates must be [longitude, latitude]")
        longitude, latitude = value
        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            raise ValueError("coordinates out of range")
        return value

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @classmethod
    def from_lat_lng(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=[longitude, latitude])
