"""
Meeting Data Models

Defines the location-pinned meeting and the result of ending one.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from enum import Enum
import uuid

from fieldroom.services.notes_service import Note


class MeetingState(Enum):
    """Lifecycle of a meeting. ENDED is terminal."""
    ACTIVE = "active"
    # transcript write in progress; unresolvable until it succeeds or fails
    ENDING = "ending"
    ENDED = "ended"


@dataclass
class Meeting:
    """A meeting held at a map location, with a running transcript."""
    lat: float
    lng: float
    location_name: str
    started_by: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=datetime.now)
    # user id -> time joined, in join order
    participants: Dict[str, datetime] = field(default_factory=dict)
    transcript: List[str] = field(default_factory=list)
    state: MeetingState = MeetingState.ACTIVE
    ended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state == MeetingState.ACTIVE

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def participant_list(self) -> List[str]:
        """Participants in join order."""
        return list(self.participants)

    def add_line(self, line: str) -> None:
        self.transcript.append(line)

    @property
    def transcript_text(self) -> str:
        """Full transcript as one document."""
        return "\n".join(self.transcript)

    def summary(self) -> Dict[str, Any]:
        """Public view of the meeting, without the transcript."""
        return {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "locationName": self.location_name,
            "startedBy": self.started_by,
            "startedAt": self.started_at.astimezone(timezone.utc).isoformat(),
            "participants": self.participant_list(),
        }


@dataclass
class MeetingEnd:
    """Artifacts produced when a meeting ends."""
    meeting: Meeting
    file_name: str
    note: Optional[Note]
