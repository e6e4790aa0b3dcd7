"""
Test configuration and fixtures.

Provides:
- A fresh in-memory repository bundle per test
- A recording router that captures fan-out instead of touching sockets
- A stub geocoder
- User factory and bearer-token headers
- FastAPI TestClient wired to the fixtures above
"""

import os

# Must be set before app.core.settings is imported
os.environ["USE_MOCK_DB"] = "true"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GEOCODING_PROVIDER"] = "none"
os.environ["REALTIME_REQUIRE_AUTH"] = "true"

from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.core.realtime import PresenceRouter
from app.core.security import create_access_token, hash_password
from app.dependencies import get_geocoder, get_repos, get_router
from app.main import app
from app.models.base import GeoPoint
from app.models.user import Identity, User
from app.repositories.memory import create_memory_repositories
from app.services.alert_lifecycle import AlertLifecycleEngine
from app.services.geocoding import GeocodingProvider, empty_result


DEMO_PASSWORD = "password123"
DEMO_PASSWORD_HASH = hash_password(DEMO_PASSWORD)


class StubGeocoder(GeocodingProvider):
    """Returns ``address`` or raises ``error``; records every lookup."""

    name = "stub"

    def __init__(self, address: Optional[str] = None, error: Optional[Exception] = None):
        self.address = address
        self.error = error
        self.calls: List[Tuple[float, float]] = []

    def reverse_geocode(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        if self.error is not None:
            raise self.error
        result = empty_result(self.name)
        result["formatted_address"] = self.address
        return result


class RecordingRouter:
    """Stands in for PresenceRouter.deliver."""

    def __init__(self, fail_events: Optional[set] = None):
        self.delivered: List[Dict[str, Any]] = []
        self.fail_events = fail_events or set()
        self.attempts = 0

    async def deliver(self, event, payload, user_id=None):
        self.attempts += 1
        if event in self.fail_events:
            raise ConnectionError(f"socket gone for {event}")
        self.delivered.append({"event": event, "payload": payload, "user_id": user_id})


class FakeWebSocket:
    def __init__(self) -> None:
        self.accepted = False
        self.closed = False
        self.sent: List[str] = []
        self.fail_sends = False

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True


@pytest.fixture
def repos():
    return create_memory_repositories()


@pytest.fixture
def geocoder():
    return StubGeocoder()


@pytest.fixture
def engine(repos, geocoder):
    return AlertLifecycleEngine(repos, geocoder, fanout_limit=20)


@pytest.fixture
def make_user(repos):
    """Create a stored user; returns (User, Identity)."""
    counter = {"n": 0}

    def _make(role: str = "citizen", name: Optional[str] = None, coordinates=None, **fields):
        counter["n"] += 1
        n = counter["n"]
        password_hash = fields.pop("password_hash", DEMO_PASSWORD_HASH)
        user = User(
            id=f"{role}-{n}",
            name=name or f"{role.title()} {n}",
            email=f"{role}{n}@example.com",
            password_hash=password_hash,
            role=role,
            location=GeoPoint(coordinates=coordinates or [123.1816, 13.6218]),
            **fields,
        )
        user = repos.users.create(user)
        return user, Identity.from_user(user)

    return _make


@pytest.fixture
def alert_payload():
    def _payload(type: str = "police", priority: str = "high", **overrides) -> Dict[str, Any]:
        data = {
            "title": "Break-in at Penafrancia Ave",
            "description": "Two men forced open a store shutter",
            "type": type,
            "priority": priority,
            "location": {
                "address": "Penafrancia Ave, Naga City",
                "coordinates": {"type": "Point", "coordinates": [123.1948, 13.6192]},
            },
        }
        data.update(overrides)
        return data

    return _payload


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def recording_router():
    return RecordingRouter()


@pytest.fixture
def fake_socket():
    return FakeWebSocket


@pytest.fixture
def presence():
    return PresenceRouter(require_auth=True)


@pytest.fixture
def client(repos, presence):
    app.dependency_overrides[get_repos] = lambda: repos
    app.dependency_overrides[get_router] = lambda: presence
    app.dependency_overrides[get_geocoder] = lambda: StubGeocoder()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
