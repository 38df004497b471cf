"""
Tests for the client registry and broadcast router.

Run with:
    pytest fieldroom/tests/test_manager.py -v
"""

import pytest
from starlette.websockets import WebSocketState

from fieldroom.room.models import Location, UserType
from fieldroom.websocket.manager import ConnectionManager, Session

from conftest import make_websocket


pytestmark = pytest.mark.asyncio


def add_session(manager: ConnectionManager, session_id: str, user_id: str, **kwargs) -> Session:
    session = Session(id=session_id, websocket=make_websocket(), user_id=user_id, **kwargs)
    manager.register(session)
    return session


class TestRegistry:

    async def test_register_lookup_remove(self):
        manager = ConnectionManager()
        session = add_session(manager, "s1", "alice")

        assert manager.lookup("s1") is session
        assert manager.count() == 1
        assert manager.remove("s1") is session
        assert manager.lookup("s1") is None
        assert manager.remove("s1") is None

    async def test_sessions_for_user(self):
        manager = ConnectionManager()
        add_session(manager, "s1", "alice")
        add_session(manager, "s2", "alice")
        add_session(manager, "s3", "bob")

        assert [s.id for s in manager.sessions_for("alice")] == ["s1", "s2"]


class TestBroadcast:

    async def test_broadcast_reaches_all_sessions(self):
        manager = ConnectionManager()
        first = add_session(manager, "s1", "alice")
        second = add_session(manager, "s2", "bob")

        sent = await manager.broadcast({"type": "chat", "text": "hi"})

        assert sent == 2
        assert first.websocket.sent_messages == [{"type": "chat", "text": "hi"}]
        assert second.websocket.sent_messages == [{"type": "chat", "text": "hi"}]

    async def test_broadcast_excludes_session(self):
        manager = ConnectionManager()
        first = add_session(manager, "s1", "alice")
        second = add_session(manager, "s2", "bob")

        sent = await manager.broadcast({"type": "move"}, exclude="s1")

        assert sent == 1
        assert first.websocket.sent_messages == []
        assert len(second.websocket.sent_messages) == 1

    async def test_closed_transport_skipped(self):
        manager = ConnectionManager()
        closed = add_session(manager, "s1", "alice")
        open_ = add_session(manager, "s2", "bob")
        closed.websocket.client_state = WebSocketState.DISCONNECTED

        sent = await manager.broadcast({"type": "chat"})

        assert sent == 1
        closed.websocket.send_text.assert_not_awaited()
        assert len(open_.websocket.sent_messages) == 1

    async def test_failing_transport_does_not_raise(self):
        manager = ConnectionManager()
        broken = add_session(manager, "s1", "alice")
        healthy = add_session(manager, "s2", "bob")
        broken.websocket.send_text.side_effect = RuntimeError("connection reset")

        sent = await manager.broadcast({"type": "chat"})

        assert sent == 1
        assert len(healthy.websocket.sent_messages) == 1

    async def test_send_to_user_reaches_every_session(self):
        manager = ConnectionManager()
        phone = add_session(manager, "s1", "alice")
        laptop = add_session(manager, "s2", "alice")
        other = add_session(manager, "s3", "bob")

        sent = await manager.send_to_user("alice", {"type": "pong"})

        assert sent == 2
        assert phone.websocket.sent_messages == laptop.websocket.sent_messages == [{"type": "pong"}]
        assert other.websocket.sent_messages == []

    async def test_send_to_one_on_closed_socket(self):
        manager = ConnectionManager()
        ws = make_websocket()
        ws.application_state = WebSocketState.DISCONNECTED

        assert await manager.send_to_one(ws, {"type": "pong"}) is False


class TestPresence:

    async def test_presence_lists_sessions_and_ai(self):
        manager = ConnectionManager()
        add_session(manager, "s1", "alice", location=Location(lat=1.0, lng=2.0, name="Camp"))

        users = manager.presence("pauline")

        assert users[0]["userId"] == "alice"
        assert users[0]["userType"] == "human"
        assert users[0]["location"] == {"lat": 1.0, "lng": 2.0, "name": "Camp"}
        assert users[0]["status"] == "online"
        assert users[1]["userId"] == "pauline"
        assert users[1]["userType"] == "ai"
        assert users[1]["location"] is None

    async def test_connected_ai_not_duplicated(self):
        manager = ConnectionManager()
        add_session(manager, "s1", "pauline", user_type=UserType.AI)

        users = manager.presence("pauline")

        assert len(users) == 1
        assert users[0]["userType"] == "ai"

    async def test_presence_without_ai(self):
        assert ConnectionManager().presence() == []
