"""
Realtime channel - WebSocket endpoint and presence snapshot.

Clients connect to /ws (optionally ?token=<jwt>) and exchange JSON frames
{"event": name, "data": payload}.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from app.core.errors import AlertoError, AuthorizationError
from app.core.realtime import PresenceRouter
from app.core.security import decode_access_token
from app.dependencies import get_router, get_user_service
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    presence: PresenceRouter = Depends(get_router),
    users: UserService = Depends(get_user_service),
):
    """
    Inbound events: user-online, update-location, join-room.

    The token must belong to an active account: a bad token or a missing
    user closes the socket with 4001, an inactive account with 4003.
    No token is allowed, but then presence and room actions are rejected
    while auth is required.
    """
    user_id = None
    if token:
        try:
            payload = decode_access_token(token)
            identity = await run_in_threadpool(users.resolve_identity, payload["id"])
        except AuthorizationError as e:
            await websocket.close(code=4003, reason=e.message)
            return
        except AlertoError as e:
            await websocket.close(code=4001, reason=e.message)
            return
        user_id = identity.user_id

    await presence.connect(websocket, user_id=user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                message = None
            await presence.handle(websocket, message if isinstance(message, dict) else {})
    except WebSocketDisconnect:
        pass
    finally:
        await presence.disconnect(websocket)


@router.get("/api/online-users")
async def online_users(presence: PresenceRouter = Depends(get_router)):
    users = await presence.snapshot()
    return {"users": users, "count": len(users)}
