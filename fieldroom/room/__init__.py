"""Shared room records and the bounded chat history."""

from .history import ChatHistory
from .models import ChatRecord, Location, RecordType, UserType, generate_id, now_ms

__all__ = [
    "ChatHistory",
    "ChatRecord",
    "Location",
    "RecordType",
    "UserType",
    "generate_id",
    "now_ms",
]
