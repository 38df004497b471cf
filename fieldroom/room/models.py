"""
Room Data Models

Shared records exchanged over the room socket.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


def now_ms() -> int:
    """Current time as epoch milliseconds (the wire timestamp format)."""
    return int(time.time() * 1000)


def generate_id() -> str:
    return uuid.uuid4().hex


class UserType(str, Enum):
    """Kind of participant behind a session."""
    HUMAN = "human"
    AI = "ai"

    @classmethod
    def parse(cls, value: Any) -> "UserType":
        try:
            return cls(value)
        except ValueError:
            return cls.HUMAN


class RecordType(str, Enum):
    CHAT = "chat"
    AI_RESPONSE = "ai_response"


@dataclass
class Location:
    """Last known position of a participant."""
    lat: float
    lng: float
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Location"]:
        if not isinstance(data, dict):
            return None
        lat, lng = data.get("lat"), data.get("lng")
        if lat is None or lng is None:
            return None
        try:
            return cls(lat=float(lat), lng=float(lng), name=data.get("name"))
        except (TypeError, ValueError):
            return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"lat": self.lat, "lng": self.lng}
        if self.name is not None:
            data["name"] = self.name
        return data


@dataclass
class ChatRecord:
    """A chat message or AI response kept in the shared history."""
    from_user: str
    text: str
    type: RecordType = RecordType.CHAT
    id: str = field(default_factory=generate_id)
    timestamp: int = field(default_factory=now_ms)
    in_reply_to: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "id": self.id,
            "from": self.from_user,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.type == RecordType.AI_RESPONSE:
            data["inReplyTo"] = self.in_reply_to
        return data
