"""Password hashing and JWT session tokens."""

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from app.core.errors import AuthenticationError
from app.core.settings import settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def create_access_token(user_id: str, role: str) -> str:
    """
    Create a signed session JWT.

    The ``id`` claim is the user document ID; role is informational only,
    the authoritative role is re-read from the user record on every request.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a session JWT.

    Raises:
        AuthenticationError: token expired, malformed or signed with another secret
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    if not payload.get("id"):
        raise AuthenticationError("Invalid token")
    return payload
