"""WebSocket infrastructure for the room: session registry and broadcast router."""

from .manager import ConnectionManager, Session, WebSocketHandler, is_open

__all__ = [
    "ConnectionManager",
    "Session",
    "WebSocketHandler",
    "is_open",
]
