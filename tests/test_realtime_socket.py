from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import WebSocketDisconnect

from app.core.security import create_access_token
from app.core.settings import settings


def _url(user) -> str:
    return f"/ws?token={create_access_token(user.id, user.role)}"


def _online(user):
    return {"event": "user-online", "data": {"userId": user.id, "name": user.name, "userType": user.role}}


def _close_code(client, url) -> int:
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(url):
            pass
    return exc.value.code


# ----------------------------------------------------------------------
# handshake
# ----------------------------------------------------------------------

def test_bad_or_expired_token_closes_with_4001(client, make_user):
    user, _ = make_user("citizen")
    expired = jwt.encode(
        {"id": user.id, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.JWT_SECRET,
        algorithm="HS256",
    )

    assert _close_code(client, "/ws?token=not-a-jwt") == 4001
    assert _close_code(client, f"/ws?token={expired}") == 4001


def test_token_of_missing_account_closes_with_4001(client):
    token = create_access_token("ghost-1", "citizen")
    assert _close_code(client, f"/ws?token={token}") == 4001


@pytest.mark.parametrize("account_status", ["suspended", "inactive"])
def test_inactive_account_is_refused(client, make_user, presence, account_status):
    user, _ = make_user("citizen", status=account_status)

    assert _close_code(client, _url(user)) == 4003
    assert presence.connection_count() == 0


def test_active_account_announces_itself(client, make_user):
    user, _ = make_user("police")

    with client.websocket_connect(_url(user)) as ws:
        ws.send_json(_online(user))
        frame = ws.receive_json()

    assert frame["event"] == "online-users-update"
    assert [entry["userId"] for entry in frame["data"]] == [user.id]


# ----------------------------------------------------------------------
# frames
# ----------------------------------------------------------------------

@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"user-online"'])
def test_non_object_frames_get_an_error_frame(client, make_user, raw):
    user, _ = make_user("citizen")

    with client.websocket_connect(_url(user)) as ws:
        ws.send_text(raw)
        frame = ws.receive_json()

    assert frame == {"event": "error", "data": {"message": "Malformed frame"}}


def test_announcing_someone_else_is_rejected(client, make_user):
    user, _ = make_user("citizen")
    other, _ = make_user("citizen")

    with client.websocket_connect(_url(user)) as ws:
        ws.send_json(_online(other))
        frame = ws.receive_json()

    assert frame["event"] == "error"


# ----------------------------------------------------------------------
# disconnect
# ----------------------------------------------------------------------

def test_closing_a_socket_drops_its_presence_for_everyone(client, make_user):
    maria, _ = make_user("citizen")
    juan, _ = make_user("citizen")

    with client.websocket_connect(_url(maria)) as watcher:
        watcher.send_json(_online(maria))
        assert [u["userId"] for u in watcher.receive_json()["data"]] == [maria.id]

        with client.websocket_connect(_url(juan)) as ws:
            ws.send_json(_online(juan))
            assert [u["userId"] for u in watcher.receive_json()["data"]] == [maria.id, juan.id]

            ws.close()
            update = watcher.receive_json()

        assert update["event"] == "online-users-update"
        assert [u["userId"] for u in update["data"]] == [maria.id]
        assert client.get("/api/online-users").json()["count"] == 1
