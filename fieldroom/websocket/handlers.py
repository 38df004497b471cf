"""
Room WebSocket Handler

Protocol (JSON objects, ``type`` discriminator):
    Client -> Server:
    - auth {userId, userType?, metadata?}
    - chat {text}
    - invoke {command, id?}
    - move {location: {lat, lng, name?}}
    - note {action: add|delete, lat?, lng?, locationName?, text?, noteId?}
    - meeting {action: start|join|end, lat?, lng?, locationName?, meetingId?}
    - state_update {update}
    - drawing {drawing}
    - ping

    Server -> Client:
    - state, history, notes, meetings: snapshot sent after auth
    - join, presence: membership
    - chat, ai_response, typing: conversation
    - move, note_added, note_deleted, state_update, drawing
    - meeting_started, meeting_joined, meeting_ended
    - pong, error
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket

from fieldroom.ai.client import CompletionClient
from fieldroom.ai.context import ContextBuilder, is_mentioned
from fieldroom.ai.pipeline import AIPipeline
from fieldroom.config import RoomConfig
from fieldroom.errors import RoomError, ValidationError
from fieldroom.meeting.manager import MeetingManager
from fieldroom.room.history import ChatHistory
from fieldroom.room.models import ChatRecord, Location, UserType, generate_id, now_ms
from fieldroom.services.notes_service import NotesStore
from fieldroom.services.persistence import WorkspaceStore

from .manager import ConnectionManager, Session, WebSocketHandler

logger = logging.getLogger(__name__)

# Drawing ids become file names under drawings/
DRAWING_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def _coordinate(value: Any) -> Optional[float]:
    """Parse an optional coordinate from a message field."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid coordinate: {value!r}")


@dataclass
class RoomServices:
    """The room's shared state, owned here and injected into handlers."""
    config: RoomConfig
    registry: ConnectionManager
    history: ChatHistory
    persistence: WorkspaceStore
    notes: NotesStore
    meetings: MeetingManager
    ai: AIPipeline


def build_services(
    config: RoomConfig,
    completion_client: Optional[CompletionClient] = None,
    persistence: Optional[WorkspaceStore] = None,
) -> RoomServices:
    """Wire up a room from its configuration."""
    registry = ConnectionManager()
    history = ChatHistory(config.max_history)
    persistence = persistence or WorkspaceStore(config.workspace_path)
    notes = NotesStore(persistence)
    meetings = MeetingManager(notes, persistence)
    context_builder = ContextBuilder(config, history, notes, registry)
    ai = AIPipeline(
        config=config,
        registry=registry,
        history=history,
        meetings=meetings,
        context_builder=context_builder,
        client=completion_client or CompletionClient(config),
        persistence=persistence,
    )
    return RoomServices(
        config=config,
        registry=registry,
        history=history,
        persistence=persistence,
        notes=notes,
        meetings=meetings,
        ai=ai,
    )


Handler = Callable[[Session, dict], Awaitable[None]]


class RoomHandler(WebSocketHandler):
    """
    Dispatches inbound room messages.

    Every handler runs inside one error boundary: room errors go back to the
    originating session, anything else is logged and reported generically.
    """

    def __init__(self, services: RoomServices):
        super().__init__(services.registry)
        self.services = services
        self.config = services.config
        self._handlers: Dict[str, Handler] = {
            "chat": self._handle_chat,
            "invoke": self._handle_invoke,
            "move": self._handle_move,
            "note": self._handle_note,
            "meeting": self._handle_meeting,
            "state_update": self._handle_state_update,
            "drawing": self._handle_drawing,
        }

    async def handle_message(self, websocket: WebSocket, session_id: str, data: dict):
        """Handle one inbound room message."""
        msg_type = data.get("type", "")

        try:
            if msg_type == "auth":
                await self._handle_auth(websocket, session_id, data)

            elif msg_type == "ping":
                await self.manager.send_to_one(websocket, {"type": "pong", "timestamp": now_ms()})

            elif msg_type in self._handlers:
                session = self.manager.lookup(session_id)
                if not session:
                    logger.debug(f"Ignoring {msg_type} from unauthenticated connection {session_id}")
                    return
                await self._handlers[msg_type](session, data)

            else:
                logger.warning(f"Unknown message type: {msg_type!r}")

        except RoomError as e:
            await self.manager.send_to_one(websocket, {
                "type": "error",
                "text": e.message,
                "timestamp": now_ms(),
            })

        except Exception as e:
            logger.exception(f"Message handling failed for {msg_type!r}: {e}")
            await self.manager.send_to_one(websocket, {"type": "error", "error": str(e)})

    # === AUTH ===

    async def _handle_auth(self, websocket: WebSocket, session_id: str, data: dict):
        user_id = data.get("userId")
        if not isinstance(user_id, str) or not user_id:
            await self.manager.send_to_one(websocket, {"type": "error", "error": "userId is required"})
            return

        metadata = data.get("metadata")
        session = Session(
            id=session_id,
            websocket=websocket,
            user_id=user_id,
            user_type=UserType.parse(data.get("userType", "human")),
            metadata=metadata if isinstance(metadata, dict) else {},
        )
        self.manager.register(session)
        logger.info(f"{user_id} joined ({session.user_type.value})")

        state = await self.services.persistence.load_state()
        history = self.services.history.recent(self.config.history_on_join)
        await self.manager.send_to_one(websocket, {"type": "state", "data": state})
        await self.manager.send_to_one(websocket, {
            "type": "history",
            "messages": [record.to_dict() for record in history],
        })
        await self.manager.send_to_one(websocket, {"type": "notes", "notes": self.services.notes.to_list()})
        await self.manager.send_to_one(websocket, {
            "type": "meetings",
            "meetings": self.services.meetings.summaries(),
        })

        await self.manager.broadcast({
            "type": "join",
            "userId": user_id,
            "userType": session.user_type.value,
            "timestamp": now_ms(),
        }, exclude=session_id)
        await self.broadcast_presence()

    # === CHAT ===

    async def _handle_chat(self, session: Session, data: dict):
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            return

        record = ChatRecord(from_user=session.user_id, text=text)
        self.services.history.append(record)
        session.touch()

        await self.manager.broadcast(record.to_dict())
        self.services.meetings.record_chat(session.user_id, text)

        if self.config.log_chat:
            try:
                await self.services.persistence.append_chat_log(record.to_dict())
            except OSError as e:
                logger.error(f"Failed to write chat log: {e}")

        if is_mentioned(text, self.config.ai_user_id):
            logger.info(f"{session.user_id} mentioned {self.config.ai_user_id}")
            await self.services.ai.schedule(session.user_id, text, record.id)

    async def _handle_invoke(self, session: Session, data: dict):
        command = data.get("command")
        if not isinstance(command, str) or not command.strip():
            return
        logger.info(f"Invoke from {session.user_id}: {command[:50]}")
        await self.services.ai.schedule(session.user_id, command, data.get("id"))

    # === MOVE ===

    async def _handle_move(self, session: Session, data: dict):
        location = Location.from_dict(data.get("location"))
        if location is None:
            return

        session.location = location
        session.touch()

        await self.manager.broadcast({
            "type": "move",
            "userId": session.user_id,
            "location": location.to_dict(),
            "timestamp": now_ms(),
        }, exclude=session.id)
        await self.broadcast_presence()

    # === NOTES ===

    async def _handle_note(self, session: Session, data: dict):
        action = data.get("action")
        notes = self.services.notes

        if action == "add":
            note = await notes.add(
                author=session.user_id,
                lat=_coordinate(data.get("lat")),
                lng=_coordinate(data.get("lng")),
                text=data.get("text") or "",
                location_name=data.get("locationName"),
            )
            await self.manager.broadcast({
                "type": "note_added",
                "note": note.to_dict(),
                "timestamp": now_ms(),
            })

        elif action == "delete" and data.get("noteId"):
            removed = await notes.delete(session.user_id, data["noteId"])
            if removed:
                await self.manager.broadcast({
                    "type": "note_deleted",
                    "noteId": removed.id,
                    "timestamp": now_ms(),
                })

        else:
            logger.warning(f"Unknown note action: {action!r}")

    # === MEETINGS ===

    async def _handle_meeting(self, session: Session, data: dict):
        action = data.get("action")
        meetings = self.services.meetings
        user_id = session.user_id

        if action == "start":
            meeting = meetings.start(
                user_id,
                _coordinate(data.get("lat")),
                _coordinate(data.get("lng")),
                data.get("locationName"),
            )
            await self.manager.broadcast({
                "type": "meeting_started",
                "meeting": meeting.summary(),
                "timestamp": now_ms(),
            })

        elif action == "join":
            meeting = meetings.join(user_id, data.get("meetingId"))
            await self.manager.broadcast({
                "type": "meeting_joined",
                "meetingId": meeting.id,
                "userId": user_id,
                "participants": meeting.participant_list(),
                "timestamp": now_ms(),
            })

        elif action == "end":
            result = await meetings.end(user_id, data.get("meetingId"))
            await self.manager.broadcast({
                "type": "meeting_ended",
                "meetingId": result.meeting.id,
                "fileName": result.file_name,
                "locationName": result.meeting.location_name,
                "endedBy": user_id,
                "note": result.note.to_dict() if result.note else None,
                "timestamp": now_ms(),
            })

        else:
            logger.warning(f"Unknown meeting action: {action!r}")

    # === STATE / DRAWING ===

    async def _handle_state_update(self, session: Session, data: dict):
        update = data.get("update")
        if not isinstance(update, dict):
            return

        persistence = self.services.persistence
        state = await persistence.load_state()
        state.update(update)
        await persistence.save_state(state)

        await self.manager.broadcast({
            "type": "state_update",
            "update": update,
            "timestamp": now_ms(),
        }, exclude=session.id)

    async def _handle_drawing(self, session: Session, data: dict):
        raw = data.get("drawing")
        if not isinstance(raw, dict):
            return

        drawing_id = raw.get("id") or generate_id()
        if not isinstance(drawing_id, str) or not DRAWING_ID_RE.match(drawing_id):
            raise ValidationError("Invalid drawing id.")

        drawing: Dict[str, Any] = {
            **raw,
            "id": drawing_id,
            "createdBy": session.user_id,
            "createdAt": raw.get("createdAt") or now_ms(),
            "updatedAt": now_ms(),
        }
        await self.services.persistence.save_drawing(drawing)

        await self.manager.broadcast({
            "type": "drawing",
            "drawing": drawing,
            "timestamp": now_ms(),
        }, exclude=session.id)

    # === PRESENCE ===

    async def broadcast_presence(self):
        await self.manager.broadcast({
            "type": "presence",
            "users": self.manager.presence(self.config.ai_user_id),
        })

    async def on_disconnect(self, session_id: str):
        """Drop the session, leave its meetings and refresh presence."""
        session = self.manager.lookup(session_id)
        if not session:
            return

        try:
            self.services.meetings.leave_all(session.user_id)
            self.manager.remove(session_id)
            await self.broadcast_presence()
        except Exception as e:
            logger.exception(f"Disconnect cleanup failed for {session_id}: {e}")
        logger.info(f"{session.user_id} disconnected ({session_id})")
