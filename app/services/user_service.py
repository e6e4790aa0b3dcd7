"""
User Service - accounts, credentials, profiles and admin management.
"""

import logging
from typing import Dict, List, Optional

from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.security import create_access_token, hash_password, verify_password
from app.core.settings import settings
from app.models.base import GeoPoint, utcnow
from app.models.user import (
    Identity,
    LocationUpdate,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    SELF_REGISTRABLE_ROLES,
    User,
    UserStatus,
)
from app.repositories.base import Repositories
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


class UserService:
    """
    Service for user management.
    """

    def __init__(self, repos: Repositories):
        self.repos = repos

    def _require(self, user_id: str) -> User:
        user = self.repos.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ------------------------------------------------------------------
    # authentication
    # ------------------------------------------------------------------

    def register(self, request: RegisterRequest) -> Dict:
        """
        Create an account and return ``{"token", "user"}``.

        Admin accounts cannot be self-registered; a taken email is a
        ConflictError raised by the repository.
        """
        if request.role.value not in SELF_REGISTRABLE_ROLES:
            raise ValidationError("Invalid user type", error=f"role '{request.role.value}' is not self-registrable")
        # Held for the device reporter, which is provisioned without the email check
        if request.email == settings.DEVICE_REPORTER_EMAIL.lower():
            raise ConflictError("User already exists with this email")

        user = User(
            id=self.repos.users.new_id(),
            name=request.name,
            email=request.email,
            password_hash=hash_password(request.password),
            contact_number=request.contact_number,
            role=request.role,
            address=request.address,
        )
        user = self.repos.users.create(user)
        logger.info(f"User registered: {user.id} ({user.role})")

        return {
            "token": create_access_token(user.id, user.role),
            "user": user.public_dict(),
        }

    def login(self, email: str, password: str) -> Dict:
        user = self.repos.users.get_by_email(email or "")
        if user is None or not verify_password(password or "", user.password_hash):
            raise AuthenticationError("Invalid credentials")
        if user.status != UserStatus.ACTIVE.value:
            raise AuthorizationError("Account is inactive. Please contact administrator.")

        user = self.repos.users.update(user.id, {"last_active": utcnow()}) or user
        logger.info(f"User logged in: {user.id}")

        return {
            "token": create_access_token(user.id, user.role),
            "user": user.public_dict(),
        }

    def resolve_identity(self, user_id: str) -> Identity:
        """Map a token subject to a live account."""
        user = self.repos.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.status != UserStatus.ACTIVE.value:
            raise AuthorizationError("Account is inactive")
        return Identity.from_user(user)

    # ------------------------------------------------------------------
    # self service
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Dict:
        return self._require(user_id).public_dict()

    def update_profile(self, user_id: str, changes: ProfileUpdate) -> Dict:
        self._require(user_id)
        fields = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}

        family = fields.get("family_members")
        if family is not None:
            if user_id in family:
                raise ValidationError("You cannot list yourself as a family member")
            known = {u.id for u in self.repos.users.get_many(family)}
            missing = [uid for uid in family if uid not in known]
            if missing:
                raise ValidationError("Unknown family member", error=", ".join(missing))

        user = self.repos.users.update(user_id, fields)
        if user is None:
            raise NotFoundError("User not found")
        return user.public_dict()

    def change_password(self, user_id: str, request: PasswordChange) -> None:
        user = self._require(user_id)
        if not verify_password(request.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        self.repos.users.update(user_id, {"password_hash": hash_password(request.new_password)})
        logger.info(f"Password changed for {user_id}")

    def update_location(self, user_id: str, request: LocationUpdate) -> Dict:
        self._require(user_id)
        location = GeoPoint(coordinates=request.coordinates)
        user = self.repos.users.update(user_id, {"location": location.model_dump(), "last_active": utcnow()})
        return user.model_dump(mode="json")["location"]

    # ------------------------------------------------------------------
    # admin
    # ------------------------------------------------------------------

    def list_users(
        self,
        role: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict:
        users: List[User] = self.repos.users.query(role=role, status=status)
        result = paginate(users, page, limit)
        return {
            "users": [u.public_dict() for u in result["items"]],
            "total_pages": result["total_pages"],
            "current_page": result["current_page"],
            "total": result["total"],
        }

    def set_status(self, user_id: str, status: str) -> Dict:
        user = self.repos.users.update(user_id, {"status": status})
        if user is None:
            raise NotFoundError("User not found")
        logger.info(f"User {user_id} status set to {status}")
        return user.public_dict()

    def delete_user(self, identity: Identity, user_id: str) -> None:
        if user_id == identity.user_id:
            raise ValidationError("You cannot delete your own account")
        if not self.repos.users.delete(user_id):
            raise NotFoundError("User not found")
        logger.info(f"User {user_id} deleted by {identity.user_id}")
