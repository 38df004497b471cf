"""
Context Builder - decides when the AI is addressed and what it gets to see.

Handles:
- Mention detection (``@pauline`` or a bare, word-bounded ``pauline``)
- System prompt naming the AI and the person addressing it
- Notes left near the invoking user's last known position
- A window of recent chat turns mapped to user/assistant roles
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fieldroom.config import RoomConfig
from fieldroom.room.history import ChatHistory
from fieldroom.room.models import Location
from fieldroom.services.notes_service import NotesStore
from fieldroom.websocket.manager import ConnectionManager

logger = logging.getLogger(__name__)


def is_mentioned(text: str, ai_user_id: str) -> bool:
    """True when ``text`` mentions the AI id as a whole word, with or without '@'."""
    if not text or not ai_user_id:
        return False
    name = re.escape(ai_user_id)
    patterns = (
        rf"@{name}\b",
        rf"\b{name}\b",
    )
    return any(re.search(p, text, re.IGNORECASE) for p in patterns)


@dataclass
class AIContext:
    """Prompt for one completion request. Not persisted."""
    system: str
    messages: List[Dict[str, str]] = field(default_factory=list)

    def as_messages(self) -> List[Dict[str, str]]:
        """Role-tagged messages in completion API order."""
        return [{"role": "system", "content": self.system}, *self.messages]


class ContextBuilder:
    """Assembles bounded conversation context for the AI participant."""

    def __init__(
        self,
        config: RoomConfig,
        history: ChatHistory,
        notes: NotesStore,
        registry: ConnectionManager,
    ):
        self.config = config
        self.history = history
        self.notes = notes
        self.registry = registry

    def _system_prompt(self, from_user: str) -> str:
        ai = self.config.ai_user_id
        return (
            f"You are {ai}, an AI participant in a collaborative Field Room. "
            "Multiple humans and AIs share this space in real-time. "
            "You can see recent conversation context. Respond naturally as a helpful, "
            "knowledgeable participant. Keep responses concise unless detail is needed. "
            f'The person addressing you is "{from_user}".'
        )

    def _user_location(self, user_id: str) -> Optional[Location]:
        for session in self.registry.sessions_for(user_id):
            if session.location:
                return session.location
        return None

    def _nearby_notes_block(self, from_user: str) -> str:
        if not len(self.notes):
            return ""
        location = self._user_location(from_user)
        if not location:
            return ""
        nearby = self.notes.near(location.lat, location.lng, self.config.notes_radius_metres)
        if not nearby:
            return ""

        lines = ["", "", "Notes left at or near the user's current location:"]
        for note in nearby:
            lines.append(f'- "{note.text}" (by {note.author} at {note.location_name or "unnamed location"})')
        return "\n".join(lines)

    def build(self, current_text: str, from_user: str) -> AIContext:
        """
        Build the context for a request triggered by ``from_user``.

        Args:
            current_text: The triggering message text
            from_user: User id of the invoker

        Returns:
            AIContext with system prompt and turns
        """
        system = self._system_prompt(from_user) + self._nearby_notes_block(from_user)
        context = AIContext(system=system)

        for record in self.history.recent(self.config.context_messages):
            if record.from_user == self.config.ai_user_id:
                context.messages.append({"role": "assistant", "content": record.text})
            else:
                context.messages.append({"role": "user", "content": f"{record.from_user}: {record.text}"})

        # The triggering chat is usually already the tail of the window
        current = f"{from_user}: {current_text}"
        if not context.messages or context.messages[-1]["content"] != current:
            context.messages.append({"role": "user", "content": current})

        logger.debug(f"Built AI context for {from_user}: {len(context.messages)} turns")
        return context
