"""
Shared test fixtures for the room.

Provides:
- Mock WebSocket connections that record what was sent to them
- A fake completion endpoint (httpx.MockTransport, no network)
- A fully wired room backed by a temporary workspace
"""

import json
import pytest
from typing import Any, Dict, List, Tuple
from unittest.mock import AsyncMock

import httpx
from starlette.websockets import WebSocketState

from fieldroom.ai.client import CompletionClient
from fieldroom.config import RoomConfig
from fieldroom.room.models import generate_id
from fieldroom.websocket.handlers import RoomHandler, RoomServices, build_services


def make_websocket():
    """Create a mock WebSocket that records sent messages."""
    ws = AsyncMock()
    ws.sent_messages: List[Dict[str, Any]] = []

    async def record_send(payload: str):
        ws.sent_messages.append(json.loads(payload))

    ws.send_text = AsyncMock(side_effect=record_send)
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    return ws


class FakeUpstream:
    """Canned chat-completions endpoint recording each request body."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.headers: List[httpx.Headers] = []
        self.queue: List[Any] = []
        self.reply = "Hello from the room AI"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        if self.queue:
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": self.reply}}]})

    def client(self, config: RoomConfig) -> CompletionClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return CompletionClient(config, http_client=http_client)


class RoomHarness:
    """Connects mock sessions to a RoomHandler."""

    def __init__(self, handler: RoomHandler):
        self.handler = handler
        self.sockets: Dict[str, Tuple[Any, str]] = {}

    async def join(self, user_id: str, user_type: str = "human") -> Tuple[Any, str]:
        ws = make_websocket()
        session_id = generate_id()
        await self.handler.handle_message(ws, session_id, {
            "type": "auth",
            "userId": user_id,
            "userType": user_type,
        })
        self.sockets[user_id] = (ws, session_id)
        return ws, session_id

    async def send(self, user_id: str, data: dict):
        ws, session_id = self.sockets[user_id]
        await self.handler.handle_message(ws, session_id, data)

    async def disconnect(self, user_id: str):
        ws, session_id = self.sockets.pop(user_id)
        ws.client_state = WebSocketState.DISCONNECTED
        await self.handler.on_disconnect(session_id)

    def ws(self, user_id: str):
        return self.sockets[user_id][0]

    def received(self, user_id: str, msg_type: str) -> List[Dict[str, Any]]:
        """Messages of one type delivered to a user's socket."""
        return [m for m in self.ws(user_id).sent_messages if m.get("type") == msg_type]

    def clear(self):
        for ws, _ in self.sockets.values():
            ws.sent_messages.clear()


@pytest.fixture
def mock_websocket():
    return make_websocket()


@pytest.fixture
def room_config(tmp_path) -> RoomConfig:
    return RoomConfig(
        workspace_path=str(tmp_path / "workspace"),
        ai_user_id="pauline",
        completion_api_url="http://gateway.test",
        completion_api_token="secret-token",
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def services(room_config, upstream) -> RoomServices:
    return build_services(room_config, completion_client=upstream.client(room_config))


@pytest.fixture
def handler(services) -> RoomHandler:
    return RoomHandler(services)


@pytest.fixture
def room(handler) -> RoomHarness:
    return RoomHarness(handler)
