#!/usr/bin/env python3
"""
Field Room Client

Keeps an AI participant present in a room. The server answers mentions
itself through the completion gateway; this client only authenticates,
stays connected and logs what happens in the room.

Usage:
    # Start the server first:
    fieldroom

    # Then join as the AI participant:
    SYNC_URL=ws://localhost:3738 AI_USER_ID=pauline fieldroom-client
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import websockets
from dotenv import load_dotenv

from fieldroom.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def describe(message: Dict[str, Any]) -> str:
    """One log line for an inbound room event."""
    msg_type = message.get("type")

    if msg_type == "state":
        return "[State] Received workspace state"
    if msg_type == "history":
        return f"[History] {len(message.get('messages', []))} recent messages"
    if msg_type == "chat":
        return f"[Chat] {message.get('from')}: {message.get('text')}"
    if msg_type == "ai_response":
        return f"[AI] {message.get('from')}: {message.get('text')}"
    if msg_type == "presence":
        return "[Presence] " + ", ".join(u.get("userId", "?") for u in message.get("users", []))
    if msg_type == "join":
        return f"[Join] {message.get('userId')} ({message.get('userType')})"
    if msg_type == "move":
        location = message.get("location") or {}
        return f"[Move] {message.get('userId')} -> {location.get('name') or 'unknown'}"
    if msg_type == "drawing":
        drawing = message.get("drawing") or {}
        return f"[Drawing] {drawing.get('id')} {drawing.get('type')}"
    return f"[Unknown] {msg_type}"


class RoomClient:
    """Reconnecting room participant."""

    DEFAULT_SERVER = "ws://localhost:3738"
    RECONNECT_DELAY = 5.0

    def __init__(
        self,
        server_url: Optional[str] = None,
        user_id: str = "pauline",
        user_type: str = "ai",
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.server_url = server_url or self.DEFAULT_SERVER
        self.user_id = user_id
        self.user_type = user_type
        self.metadata = metadata or {}
        self.ws = None
        self.running = False

    def auth_message(self) -> Dict[str, Any]:
        return {
            "type": "auth",
            "userId": self.user_id,
            "userType": self.user_type,
            "metadata": self.metadata,
        }

    async def send(self, message: Dict[str, Any]) -> bool:
        """Send a message; no-op while disconnected."""
        if self.ws is None:
            return False
        try:
            await self.ws.send(json.dumps(message))
            return True
        except websockets.ConnectionClosed:
            return False

    def handle_message(self, raw: str) -> Optional[Dict[str, Any]]:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Unparseable message from room: {e}")
            return None
        logger.info(describe(message))
        return message

    async def _session(self) -> None:
        async with websockets.connect(self.server_url) as ws:
            self.ws = ws
            logger.info(f"Connected to {self.server_url}, joining as {self.user_id}")
            await self.send(self.auth_message())
            try:
                async for raw in ws:
                    self.handle_message(raw)
            finally:
                self.ws = None

    async def run(self) -> None:
        """Stay connected until stop() is called."""
        self.running = True
        while self.running:
            try:
                await self._session()
            except (OSError, websockets.WebSocketException) as e:
                logger.error(f"Connection error: {e}")
            if self.running:
                logger.info(f"Disconnected, reconnecting in {self.RECONNECT_DELAY:.0f}s")
                await asyncio.sleep(self.RECONNECT_DELAY)

    async def stop(self) -> None:
        self.running = False
        if self.ws is not None:
            await self.ws.close()


def main():
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    client = RoomClient(
        server_url=os.getenv("SYNC_URL", RoomClient.DEFAULT_SERVER),
        user_id=os.getenv("AI_USER_ID", "pauline"),
        metadata={
            "sessionKey": os.getenv("SESSION_KEY", "field-room"),
            "capabilities": ["research", "analysis", "coding", "conversation"],
        },
    )
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
