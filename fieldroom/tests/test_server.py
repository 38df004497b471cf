"""
Tests for the FastAPI application: HTTP endpoints and the WebSocket routes.

Run with:
    pytest fieldroom/tests/test_server.py -v
"""

import json

import pytest
from fastapi.testclient import TestClient

from fieldroom.server import create_app


@pytest.fixture
def app(services):
    return create_app(services=services)


def auth_and_drain(ws, user_id: str) -> list:
    """Authenticate and read the snapshot burst up to the first presence event."""
    ws.send_text(json.dumps({"type": "auth", "userId": user_id}))
    received = []
    while True:
        message = ws.receive_json()
        received.append(message)
        if message["type"] == "presence":
            return received


class TestHttpEndpoints:

    def test_health(self, app, services):
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["clients"] == 0
        assert body["notes"] == 0
        assert body["activeMeetings"] == 0
        assert body["workspace"] == services.config.workspace_path
        assert body["uptime"] >= 0

    def test_startup_creates_workspace(self, app, services):
        with TestClient(app):
            assert services.persistence.root.is_dir()

    def test_state_snapshot(self, app):
        with TestClient(app) as client:
            response = client.get("/state")

        assert response.json() == {"drawings": [], "annotations": [], "users": []}


class TestWebSocketRoutes:

    @pytest.mark.parametrize("path", ["/", "/ws"])
    def test_auth_snapshot_and_ping(self, app, path):
        with TestClient(app) as client:
            with client.websocket_connect(path) as ws:
                burst = auth_and_drain(ws, "alice")

                assert [m["type"] for m in burst] == ["state", "history", "notes", "meetings", "presence"]
                assert [u["userId"] for u in burst[-1]["users"]] == ["alice", "pauline"]

                ws.send_text(json.dumps({"type": "ping"}))
                assert ws.receive_json()["type"] == "pong"

    def test_malformed_json_keeps_connection_open(self, app):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_text("{oops")
                error = ws.receive_json()
                assert error["type"] == "error"
                assert error["error"].startswith("Invalid message")

                ws.send_text(json.dumps({"type": "ping"}))
                assert ws.receive_json()["type"] == "pong"

    def test_chat_between_two_clients(self, app, services):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
                auth_and_drain(alice, "alice")
                auth_and_drain(bob, "bob")
                # alice sees bob join, then the refreshed presence
                assert alice.receive_json()["type"] == "join"
                assert alice.receive_json()["type"] == "presence"

                bob.send_text(json.dumps({"type": "chat", "text": "hello alice"}))

                assert alice.receive_json()["text"] == "hello alice"
                assert bob.receive_json()["text"] == "hello alice"
                assert services.registry.count() == 2
