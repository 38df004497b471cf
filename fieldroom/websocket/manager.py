"""
WebSocket Connection Manager

Tracks the sessions of the room and delivers outbound events to them.
One process hosts exactly one room, so there is a single broadcast domain.
"""

import json
import logging
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from fieldroom.room.models import Location, UserType, generate_id, now_ms

logger = logging.getLogger(__name__)


def is_open(websocket: WebSocket) -> bool:
    """True while both sides of the socket are connected."""
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


@dataclass
class Session:
    """An authenticated connection and its identity/presence attributes."""
    id: str
    websocket: WebSocket
    user_id: str
    user_type: UserType = UserType.HUMAN
    metadata: Dict[str, Any] = field(default_factory=dict)
    location: Optional[Location] = None
    status: str = "online"
    joined_at: int = field(default_factory=now_ms)
    last_seen: int = field(default_factory=now_ms)

    def touch(self) -> None:
        self.last_seen = now_ms()

    def to_presence(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userType": self.user_type.value,
            "location": self.location.to_dict() if self.location else None,
            "status": self.status,
            "lastSeen": self.last_seen,
        }


class ConnectionManager:
    """
    Client registry and broadcast router for the room.

    Features:
    - Session registration keyed by a process-unique session id
    - Broadcast to every open session, optionally excluding one
    - Direct delivery to all sessions claiming a user id
    - Dead transports are skipped, never raised to the caller

    Identity is asserted by the client. Several sessions may share a user
    id; direct messages then reach all of them.
    """

    def __init__(self):
        # session id -> Session
        self._sessions: Dict[str, Session] = {}

    def register(self, session: Session) -> str:
        """Add (or replace) a session and return its id."""
        self._sessions[session.id] = session
        logger.info(f"Registered session {session.id} as {session.user_id} ({session.user_type.value})")
        return session.id

    def lookup(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        session = self._sessions.pop(session_id, None)
        if session:
            logger.info(f"Removed session {session_id} ({session.user_id})")
        return session

    def list(self) -> List[Session]:
        """Snapshot of all registered sessions."""
        return list(self._sessions.values())

    def count(self) -> int:
        return len(self._sessions)

    def sessions_for(self, user_id: str) -> List[Session]:
        return [s for s in self._sessions.values() if s.user_id == user_id]

    async def _send_text(self, websocket: WebSocket, payload: str) -> bool:
        if not is_open(websocket):
            return False
        try:
            await websocket.send_text(payload)
            return True
        except Exception as e:
            logger.debug(f"Send failed, skipping transport: {e}")
            return False

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> int:
        """
        Send a message to every open session.

        Args:
            message: Event to deliver
            exclude: Session id that should not receive it

        Returns:
            Number of sessions the message was delivered to
        """
        payload = json.dumps(message)
        sent_count = 0
        for session in self.list():
            if session.id == exclude:
                continue
            if await self._send_text(session.websocket, payload):
                sent_count += 1
        return sent_count

    async def send_to_one(self, websocket: WebSocket, message: dict) -> bool:
        """Send to a single transport; no-op when it is not open."""
        return await self._send_text(websocket, json.dumps(message))

    async def send_to_user(self, user_id: str, message: dict) -> int:
        """Send to every session whose asserted user id matches."""
        payload = json.dumps(message)
        sent_count = 0
        for session in self.sessions_for(user_id):
            if await self._send_text(session.websocket, payload):
                sent_count += 1
        return sent_count

    def presence(self, ai_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Presence entries for all sessions.

        The AI participant is always listed as online, even when no session
        has authenticated with its id.
        """
        users = [session.to_presence() for session in self.list()]
        if ai_user_id and not any(u["userId"] == ai_user_id for u in users):
            users.append({
                "userId": ai_user_id,
                "userType": UserType.AI.value,
                "location": None,
                "status": "online",
                "lastSeen": now_ms(),
            })
        return users


class WebSocketHandler:
    """
    Base class for WebSocket message handlers.

    Owns the receive loop; subclasses implement handle_message and
    on_disconnect. Inbound frames are parsed here so that malformed JSON
    can be reported without dropping the connection.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def handle_connection(self, websocket: WebSocket):
        """
        Handle a WebSocket connection lifecycle.

        Args:
            websocket: The WebSocket connection
        """
        await websocket.accept()
        session_id = generate_id()
        client = getattr(websocket, "client", None)
        logger.info(f"New connection {session_id} from {client.host if client else 'unknown'}")

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    await self.manager.send_to_one(websocket, {
                        "type": "error",
                        "error": f"Invalid message: {e}",
                    })
                    continue

                if not isinstance(data, dict):
                    await self.manager.send_to_one(websocket, {
                        "type": "error",
                        "error": "Invalid message: expected a JSON object",
                    })
                    continue

                await self.handle_message(websocket, session_id, data)

        except WebSocketDisconnect:
            logger.info(f"Connection {session_id} closed")
        except Exception as e:
            logger.error(f"WebSocket error on {session_id}: {e}")
        finally:
            await self.on_disconnect(session_id)

    async def handle_message(self, websocket: WebSocket, session_id: str, data: dict):
        """Handle one parsed inbound message. Override in subclasses."""
        raise NotImplementedError

    async def on_disconnect(self, session_id: str):
        """Called once when a connection is closed. Override for cleanup."""
        pass
