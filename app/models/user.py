"""
User models for authentication and user management.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.base import GeoPoint, utcnow


class UserRole(str, Enum):
    CITIZEN = "citizen"
    FAMILY = "family"
    POLICE = "police"
    HOSPITAL = "hospital"
    FIRE = "fire"
    ADMIN = "admin"


RESPONDER_ROLES = frozenset({UserRole.POLICE.value, UserRole.HOSPITAL.value, UserRole.FIRE.value})
SELF_REGISTRABLE_ROLES = frozenset({
    UserRole.CITIZEN.value,
    UserRole.FAMILY.value,
    UserRole.POLICE.value,
    UserRole.HOSPITAL.value,
    UserRole.FIRE.value,
})


class UserStatus(str, Enum):
    """Only ACTIVE accounts have their credentials honored."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


def default_location() -> GeoPoint:
    # Naga City hall
    return GeoPoint(coordinates=[123.1816, 13.6218])


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=30)
    relationship: Optional[str] = Field(None, max_length=50)


class User(BaseModel):
    """Stored user document (includes the password hash)."""
    id: str = Field(..., description="Document ID")
    name: str
    email: str
    password_hash: str = ""
    contact_number: Optional[str] = None
    role: UserRole = UserRole.CITIZEN
    address: Optional[str] = None
    location: GeoPoint = Field(default_factory=default_location)
    status: UserStatus = UserStatus.ACTIVE
    is_verified: bool = False
    emergency_contacts: List[EmergencyContact] = Field(default_factory=list)
    family_members: List[str] = Field(default_factory=list, description="User IDs notified of this user's alerts")
    created_at: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True
        validate_assignment = True

    def public_dict(self) -> dict:
        """JSON-safe view without credentials."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class Identity(BaseModel):
    """Verified caller, as resolved from a bearer token."""
    user_id: str
    role: UserRole
    name: str
    email: Optional[str] = None

    class Config:
        use_enum_values = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, role=user.role, name=user.name, email=user.email)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    contact_number: Optional[str] = Field(None, max_length=30)
    role: UserRole = UserRole.CITIZEN
    address: Optional[str] = Field(None, max_length=300)

    @field_validator("name", "contact_number", "address")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or "." not in domain or " " in value:
            raise ValueError("Please provide a valid email")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=300)
    emergency_contacts: Optional[List[EmergencyContact]] = None
    family_members: Optional[List[str]] = None

    class Config:
        extra = "ignore"


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class LocationUpdate(BaseModel):
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator("coordinates")
    @classmethod
    def _check(cls, value: List[float]) -> List[float]:
        if len(value) != 2:
            raise ValueError("Please provide valid coordinates [longitude, latitude]")
        longitude, latitude = value
        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            raise ValueError("coordinates out of range")
        return value


class StatusUpdate(BaseModel):
    status: UserStatus
