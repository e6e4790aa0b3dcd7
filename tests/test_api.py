import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import jwt

from app.core.settings import settings
from app.dependencies import get_geocoder
from app.main import app
from conftest import DEMO_PASSWORD, StubGeocoder


class SlowGeocoder(StubGeocoder):
    def __init__(self, delay: float):
        super().__init__(address="Panganiban Drive, Naga City")
        self.delay = delay

    def reverse_geocode(self, latitude, longitude):
        time.sleep(self.delay)
        return super().reverse_geocode(latitude, longitude)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"

    db = client.get("/api/health/db")
    assert db.status_code == 200
    assert db.json()["connected"] is True


def test_unknown_route_uses_message_body(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"message": "Route not found"}


# ----------------------------------------------------------------------
# auth
# ----------------------------------------------------------------------

def test_register_login_and_me(client):
    registered = client.post("/api/auth/register", json={
        "name": "Juan Dela Cruz",
        "email": "Juan@Email.com",
        "password": "secret1",
        "role": "citizen",
    })
    assert registered.status_code == 201
    body = registered.json()
    assert body["user"]["email"] == "juan@email.com"
    assert "password_hash" not in body["user"]

    login = client.post("/api/auth/login", json={"email": "juan@email.com", "password": "secret1"})
    assert login.status_code == 200
    token = login.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["name"] == "Juan Dela Cruz"


def test_register_rejects_admin_and_duplicates(client, make_user):
    existing, _ = make_user("citizen")

    admin = client.post("/api/auth/register", json={
        "name": "Sneaky", "email": "sneaky@email.com", "password": "secret1", "role": "admin",
    })
    duplicate = client.post("/api/auth/register", json={
        "name": "Again", "email": existing.email, "password": "secret1",
    })

    assert admin.status_code == 400
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "User already exists with this email"


def test_short_password_is_a_400(client):
    response = client.post("/api/auth/register", json={
        "name": "Juan", "email": "juan@email.com", "password": "123",
    })
    assert response.status_code == 400
    assert "message" in response.json()


def test_login_failures(client, make_user):
    inactive, _ = make_user("citizen", status="inactive")

    wrong = client.post("/api/auth/login", json={"email": inactive.email, "password": "nope"})
    blocked = client.post("/api/auth/login", json={"email": inactive.email, "password": DEMO_PASSWORD})

    assert wrong.status_code == 401
    assert blocked.status_code == 403


def test_missing_and_expired_tokens(client, make_user):
    user, _ = make_user("citizen")
    expired = jwt.encode(
        {"id": user.id, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.JWT_SECRET,
        algorithm="HS256",
    )

    assert client.get("/api/alerts").status_code == 401
    response = client.get("/api/alerts", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["message"] == "Token expired"


# ----------------------------------------------------------------------
# alerts
# ----------------------------------------------------------------------

def test_alert_lifecycle_over_http(client, repos, make_user, alert_payload, auth_headers):
    citizen, _ = make_user("citizen")
    police, _ = make_user("police")

    created = client.post("/api/alerts", json=alert_payload(), headers=auth_headers(citizen))
    assert created.status_code == 201
    assert created.json()["notified_responders"] == 1
    alert_id = created.json()["alert"]["id"]

    responded = client.put(f"/api/alerts/{alert_id}/respond", headers=auth_headers(police))
    assert responded.status_code == 200
    assert responded.json()["alert"]["status"] == "responded"

    cancel = client.put(f"/api/alerts/{alert_id}/cancel", headers=auth_headers(citizen))
    assert cancel.status_code == 400

    resolved = client.put(
        f"/api/alerts/{alert_id}/resolve", json={"notes": "cleared"}, headers=auth_headers(police)
    )
    assert resolved.status_code == 200
    assert resolved.json()["alert"]["timeline"][-1]["notes"] == "cleared"

    inbox = client.get("/api/notifications", headers=auth_headers(citizen)).json()
    assert {n["type"] for n in inbox["notifications"]} == {"alert_responded", "alert_resolved"}
    assert inbox["unread_count"] == 2
    assert inbox["notifications"][0]["alert"]["status"] == "resolved"


def test_wrong_responder_role_is_forbidden(client, make_user, alert_payload, auth_headers):
    citizen, _ = make_user("citizen")
    hospital, _ = make_user("hospital")
    alert_id = client.post("/api/alerts", json=alert_payload(type="police"), headers=auth_headers(citizen)).json()["alert"]["id"]

    response = client.put(f"/api/alerts/{alert_id}/respond", headers=auth_headers(hospital))

    assert response.status_code == 403
    assert response.json() == {"message": "Not authorized to respond to this alert type"}


def test_invalid_alert_type_is_a_400(client, make_user, alert_payload, auth_headers):
    citizen, _ = make_user("citizen")

    response = client.post("/api/alerts", json=alert_payload(type="ufo"), headers=auth_headers(citizen))

    assert response.status_code == 400


def test_device_alert_needs_no_credential(client):
    response = client.post("/api/alerts/iot", json={"type": "fire", "latitude": 13.6218, "longitude": 123.1816})

    assert response.status_code == 201
    alert = response.json()["alert"]
    assert alert["status"] == "active"
    assert "13.62180" in alert["location"]["address"]
    assert alert["reporter"]["id"] == settings.DEVICE_REPORTER_ID


def test_listing_is_scoped_by_role(client, make_user, alert_payload, auth_headers):
    juan, _ = make_user("citizen")
    maria, _ = make_user("citizen")
    police, _ = make_user("police")
    admin, _ = make_user("admin")
    client.post("/api/alerts", json=alert_payload(type="police"), headers=auth_headers(juan))
    client.post("/api/alerts", json=alert_payload(type="fire"), headers=auth_headers(maria))

    juan_view = client.get("/api/alerts", headers=auth_headers(juan)).json()
    police_view = client.get("/api/alerts", headers=auth_headers(police)).json()
    admin_view = client.get("/api/alerts", headers=auth_headers(admin)).json()

    assert juan_view["total"] == 1
    assert [a["type"] for a in police_view["alerts"]] == ["police"]
    assert admin_view["total"] == 2
    assert admin_view["current_page"] == 1


def test_nearby_returns_open_alerts_in_radius(client, make_user, alert_payload, auth_headers):
    citizen, _ = make_user("citizen")
    police, _ = make_user("police")
    client.post("/api/alerts", json=alert_payload(type="police"), headers=auth_headers(citizen))
    far = alert_payload(type="police")
    far["location"]["coordinates"]["coordinates"] = [121.0, 14.6]
    client.post("/api/alerts", json=far, headers=auth_headers(citizen))

    response = client.get(
        "/api/alerts/nearby/police",
        params={"lat": 13.62, "lng": 123.19, "radius": 5},
        headers=auth_headers(police),
    )

    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["alerts"][0]["distance_km"] < 5


def test_missing_alert_is_404(client, make_user, auth_headers):
    citizen, _ = make_user("citizen")
    response = client.get("/api/alerts/does-not-exist", headers=auth_headers(citizen))
    assert response.status_code == 404
    assert response.json() == {"message": "Alert not found"}


# ----------------------------------------------------------------------
# users & notifications
# ----------------------------------------------------------------------

def test_profile_password_and_location(client, make_user, auth_headers):
    juan, _ = make_user("citizen")
    pedro, _ = make_user("family")
    headers = auth_headers(juan)

    profile = client.put("/api/users/profile", json={"address": "Naga City", "family_members": [pedro.id]}, headers=headers)
    assert profile.json()["user"]["family_members"] == [pedro.id]

    wrong = client.put("/api/users/change-password", json={"current_password": "nope", "new_password": "newpass1"}, headers=headers)
    assert wrong.status_code == 400
    changed = client.put("/api/users/change-password", json={"current_password": DEMO_PASSWORD, "new_password": "newpass1"}, headers=headers)
    assert changed.status_code == 200
    assert client.post("/api/auth/login", json={"email": juan.email, "password": "newpass1"}).status_code == 200

    moved = client.put("/api/users/location", json={"coordinates": [123.2, 13.6]}, headers=headers)
    assert moved.json()["location"]["coordinates"] == [123.2, 13.6]
    bad = client.put("/api/users/location", json={"coordinates": [123.2]}, headers=headers)
    assert bad.status_code == 400


def test_family_member_sees_relatives_alerts(client, make_user, alert_payload, auth_headers):
    pedro, _ = make_user("family")
    juan, _ = make_user("citizen", family_members=[pedro.id])
    client.post("/api/alerts", json=alert_payload(type="hospital"), headers=auth_headers(juan))

    view = client.get("/api/alerts", headers=auth_headers(pedro)).json()
    inbox = client.get("/api/notifications", headers=auth_headers(pedro)).json()

    assert view["total"] == 1
    assert inbox["notifications"][0]["type"] == "family_alert"


def test_admin_user_management(client, make_user, auth_headers):
    admin, _ = make_user("admin")
    juan, _ = make_user("citizen")
    headers = auth_headers(admin)

    assert client.get("/api/users", headers=auth_headers(juan)).status_code == 403
    assert client.get("/api/users", params={"role": "citizen"}, headers=headers).json()["total"] == 1

    suspended = client.put(f"/api/users/{juan.id}/status", json={"status": "suspended"}, headers=headers)
    assert suspended.json()["user"]["status"] == "suspended"
    assert client.get("/api/auth/me", headers=auth_headers(juan)).status_code == 403

    assert client.delete(f"/api/users/{admin.id}", headers=headers).status_code == 400
    assert client.delete(f"/api/users/{juan.id}", headers=headers).status_code == 200
    assert client.get(f"/api/users/{juan.id}", headers=headers).status_code == 404


def test_notification_housekeeping(client, repos, make_user, auth_headers):
    juan, _ = make_user("citizen")
    maria, _ = make_user("citizen")
    first = repos.notifications.create(juan.id, "a1", "alert_resolved", "Alert Resolved", "Your alert has been resolved")
    repos.notifications.create(juan.id, "a2", "alert_responded", "Alert Responded", "On the way")
    headers = auth_headers(juan)

    assert client.put(f"/api/notifications/{first.id}/read", headers=auth_headers(maria)).status_code == 404
    assert client.put(f"/api/notifications/{first.id}/read", headers=headers).json()["notification"]["read"] is True
    assert client.get("/api/notifications", params={"unread_only": True}, headers=headers).json()["total"] == 1

    client.put("/api/notifications/read-all", headers=headers)
    cleared = client.delete("/api/notifications/clear-read", headers=headers)
    assert cleared.json()["deleted"] == 2


def test_stats_depend_on_role(client, make_user, alert_payload, auth_headers):
    juan, _ = make_user("citizen")
    police, _ = make_user("police")
    admin, _ = make_user("admin")
    alert_id = client.post("/api/alerts", json=alert_payload(), headers=auth_headers(juan)).json()["alert"]["id"]
    client.put(f"/api/alerts/{alert_id}/respond", headers=auth_headers(police))

    assert client.get("/api/users/stats", headers=auth_headers(juan)).json()["my_alerts"] == 1
    assert client.get("/api/users/stats", headers=auth_headers(police)).json()["assigned_alerts"] == 1
    admin_stats = client.get("/api/users/stats", headers=auth_headers(admin)).json()
    assert admin_stats["alerts_by_status"] == {"responded": 1}


def test_online_users_snapshot(client):
    response = client.get("/api/online-users")
    assert response.json() == {"users": [], "count": 0}


def test_device_email_cannot_be_registered(client):
    response = client.post("/api/auth/register", json={
        "name": "Impostor",
        "email": settings.DEVICE_REPORTER_EMAIL.upper(),
        "password": "secret1",
    })
    assert response.status_code == 400

    device_alert = client.post("/api/alerts/iot", json={"type": "fire", "latitude": 13.6218, "longitude": 123.1816})
    assert device_alert.status_code == 201


def test_store_failure_is_a_500_with_message(client, repos, make_user, alert_payload, auth_headers, monkeypatch):
    juan, _ = make_user("citizen")

    def broken_create(alert):
        raise RuntimeError("deadline exceeded")

    monkeypatch.setattr(repos.alerts, "create", broken_create)
    response = client.post("/api/alerts", json=alert_payload(), headers=auth_headers(juan))

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to save alert", "error": "deadline exceeded"}


def test_slow_geocoding_does_not_stall_other_requests(client):
    app.dependency_overrides[get_geocoder] = lambda: SlowGeocoder(delay=1.0)

    with ThreadPoolExecutor(max_workers=1) as pool:
        device_alert = pool.submit(
            client.post, "/api/alerts/iot", json={"type": "fire", "latitude": 13.6218, "longitude": 123.1816}
        )
        time.sleep(0.05)
        started = time.monotonic()
        health = client.get("/api/health")
        elapsed = time.monotonic() - started

        assert device_alert.result().status_code == 201

    assert health.status_code == 200
    assert elapsed < 0.5
