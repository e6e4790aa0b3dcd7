"""
Presence directory and room fan-out over WebSocket connections.

Each socket may join per-user rooms ("user-{id}") and announce one user as
online. Frames are JSON objects: {"event": name, "data": payload}.
All directory and room state lives in one PresenceRouter guarded by an
asyncio.Lock; sends happen outside the lock.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from app.core.settings import settings
from app.models.base import utcnow

logger = logging.getLogger(__name__)

EVENT_ONLINE_USERS_UPDATE = "online-users-update"
EVENT_USER_LOCATION_UPDATE = "user-location-update"
EVENT_ERROR = "error"


def room_name(user_id: str) -> str:
    return f"user-{user_id}"


@dataclass
class PresenceEntry:
    user_id: str
    location: Any
    user_type: Optional[str]
    name: Optional[str]
    websocket: Any
    last_update: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "location": self.location,
            "userType": self.user_type,
            "name": self.name,
            "lastUpdate": self.last_update.isoformat(),
        }


@dataclass
class Connection:
    websocket: Any
    # Identity proven by the token at connect time, if any
    user_id: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


class PresenceRouter:
    """Tracks connections, rooms and the online-user directory."""

    def __init__(self, require_auth: Optional[bool] = None):
        self.require_auth = settings.REALTIME_REQUIRE_AUTH if require_auth is None else require_auth
        self._connections: Dict[int, Connection] = {}
        self._presence: Dict[str, PresenceEntry] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket, user_id: Optional[str] = None) -> None:
        """Accept and register a socket. ``user_id`` is the token-verified user."""
        await websocket.accept()
        async with self._lock:
            self._connections[id(websocket)] = Connection(websocket=websocket, user_id=user_id)
        logger.info(f"Client connected (user={user_id or 'anonymous'})")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Drop the socket and any presence entry it announced."""
        async with self._lock:
            self._connections.pop(id(websocket), None)
            gone = [uid for uid, entry in self._presence.items() if entry.websocket is websocket]
            for uid in gone:
                del self._presence[uid]
            directory = self._directory() if gone else None

        if gone:
            logger.info(f"User {', '.join(gone)} went offline")
            await self.broadcast(EVENT_ONLINE_USERS_UPDATE, directory)

    # ------------------------------------------------------------------
    # inbound events
    # ------------------------------------------------------------------

    async def handle(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        """Dispatch one inbound frame."""
        event = message.get("event")
        data = message.get("data")
        if event == "user-online":
            await self.announce(websocket, data or {})
        elif event == "update-location":
            await self.update_location(websocket, data or {})
        elif event == "join-room":
            await self.join_room(websocket, data)
        elif event is None:
            await self._reject(websocket, "Malformed frame")
        else:
            await self._reject(websocket, f"Unknown event: {event}")

    async def announce(self, websocket: WebSocket, data: Dict[str, Any]) -> None:
        """user-online {userId, location, userType, name}"""
        user_id = data.get("userId") if isinstance(data, dict) else None
        if not user_id:
            await self._reject(websocket, "userId is required")
            return
        if not await self._authorized(websocket, user_id):
            return

        async with self._lock:
            self._presence[user_id] = PresenceEntry(
                user_id=user_id,
                location=data.get("location"),
                user_type=data.get("userType"),
                name=data.get("name"),
                websocket=websocket,
            )
            directory = self._directory()

        logger.info(f"User {data.get('name')} ({data.get('userType')}) is now online")
        await self.broadcast(EVENT_ONLINE_USERS_UPDATE, directory)

    async def update_location(self, websocket: WebSocket, data: Dict[str, Any]) -> None:
        """update-location {userId, location}; ignored for users not online."""
        user_id = data.get("userId") if isinstance(data, dict) else None
        if not user_id:
            await self._reject(websocket, "userId is required")
            return
        if not await self._authorized(websocket, user_id):
            return

        async with self._lock:
            entry = self._presence.get(user_id)
            if entry is None:
                return
            entry.location = data.get("location")
            entry.last_update = utcnow()
            update = {
                "userId": user_id,
                "location": entry.location,
                "userType": entry.user_type,
                "name": entry.name,
            }

        await self.broadcast(EVENT_USER_LOCATION_UPDATE, update)

    async def join_room(self, websocket: WebSocket, data: Any) -> None:
        """join-room accepts {"userId": id} or a bare id."""
        user_id = data.get("userId") if isinstance(data, dict) else data
        if not user_id or not isinstance(user_id, str):
            await self._reject(websocket, "userId is required")
            return
        if not await self._authorized(websocket, user_id):
            return

        async with self._lock:
            connection = self._connections.get(id(websocket))
            if connection is not None:
                connection.rooms.add(room_name(user_id))
        logger.debug(f"User {user_id} joined their room")

    # ------------------------------------------------------------------
    # outbound
    # ------------------------------------------------------------------

    async def deliver(self, event: str, payload: Any, user_id: Optional[str] = None) -> None:
        """Send to ``user_id``'s room, or to every connection when None."""
        if user_id is None:
            await self.broadcast(event, payload)
        else:
            await self.send_to_room(user_id, event, payload)

    async def broadcast(self, event: str, payload: Any) -> None:
        async with self._lock:
            targets = [c.websocket for c in self._connections.values()]
        await self._send_all(targets, event, payload)

    async def send_to_room(self, user_id: str, event: str, payload: Any) -> None:
        room = room_name(user_id)
        async with self._lock:
            targets = [c.websocket for c in self._connections.values() if room in c.rooms]
        await self._send_all(targets, event, payload)

    async def snapshot(self) -> List[Dict[str, Any]]:
        async with self._lock:
            return self._directory()

    def connection_count(self) -> int:
        return len(self._connections)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _directory(self) -> List[Dict[str, Any]]:
        # Caller holds the lock
        return [entry.to_dict() for entry in self._presence.values()]

    async def _authorized(self, websocket: WebSocket, user_id: str) -> bool:
        if not self.require_auth:
            return True
        connection = self._connections.get(id(websocket))
        if connection is None or connection.user_id != user_id:
            logger.warning(f"Rejected realtime action for {user_id}: socket not authenticated as that user")
            await self._reject(websocket, "Not authorized for this user")
            return False
        return True

    async def _reject(self, websocket: WebSocket, message: str) -> None:
        await self._send_all([websocket], EVENT_ERROR, {"message": message})

    async def _send_all(self, targets: List[Any], event: str, payload: Any) -> None:
        if not targets:
            return
        frame = json.dumps({"event": event, "data": payload}, default=str)
        closed = []
        for ws in targets:
            try:
                await ws.send_text(frame)
            except Exception as e:
                logger.warning(f"Dropping {event} to a closed connection: {e}")
                closed.append(ws)

        if closed:
            async with self._lock:
                for ws in closed:
                    self._connections.pop(id(ws), None)


_router_instance: Optional[PresenceRouter] = None


def get_presence_router() -> PresenceRouter:
    global _router_instance
    if _router_instance is None:
        _router_instance = PresenceRouter()
    return _router_instance