"""Location Notes Service - in-memory notes pinned to map coordinates, persisted as JSON."""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fieldroom.geo import haversine_distance
from fieldroom.room.models import now_ms

from .persistence import WorkspaceStore

logger = logging.getLogger(__name__)


def _coordinate(value: Any) -> Optional[float]:
    return None if value is None else float(value)


@dataclass
class Note:
    """A text note left at a location."""
    id: str
    lat: Optional[float]
    lng: Optional[float]
    text: str
    author: str
    timestamp: int
    location_name: Optional[str] = None
    meeting_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "locationName": self.location_name,
            "text": self.text,
            "author": self.author,
            "timestamp": self.timestamp,
        }
        if self.meeting_file:
            data["meetingFile"] = self.meeting_file
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        """Create Note from a persisted record."""
        return cls(
            id=data["id"],
            lat=_coordinate(data.get("lat")),
            lng=_coordinate(data.get("lng")),
            text=data.get("text") or "",
            author=data["author"],
            timestamp=data.get("timestamp") or now_ms(),
            location_name=data.get("locationName"),
            meeting_file=data.get("meetingFile"),
        )

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lng is not None


class NotesStore:
    """Append-only notes list with author-scoped delete and radius queries."""

    def __init__(self, persistence: WorkspaceStore):
        self.persistence = persistence
        self._notes: List[Note] = []

    async def load(self) -> int:
        """Load persisted notes, replacing the in-memory list.

        Returns:
            Number of notes loaded
        """
        loaded = []
        for raw in await self.persistence.load_notes():
            try:
                loaded.append(Note.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed note {raw!r}: {e}")
        self._notes = loaded
        logger.info(f"Loaded {len(loaded)} notes")
        return len(loaded)

    async def _save(self) -> None:
        await self.persistence.save_notes([note.to_dict() for note in self._notes])

    async def add(
        self,
        author: str,
        lat: Optional[float],
        lng: Optional[float],
        text: str,
        location_name: Optional[str] = None,
        meeting_file: Optional[str] = None,
    ) -> Note:
        """Create a note and persist the full list.

        Args:
            author: User id of the author ("system" for meeting notes)
            lat: Latitude
            lng: Longitude
            text: Note body
            location_name: Optional human readable place name
            meeting_file: Transcript artifact this note points to

        Returns:
            Created Note
        """
        note = Note(
            id=str(uuid.uuid4())[:8],
            lat=lat,
            lng=lng,
            text=text,
            author=author,
            timestamp=now_ms(),
            location_name=location_name,
            meeting_file=meeting_file,
        )
        self._notes.append(note)
        try:
            await self._save()
        except OSError:
            self._notes.remove(note)
            raise
        logger.info(f"{author} left note {note.id} at {location_name or f'{lat},{lng}'}")
        return note

    async def delete(self, requester: str, note_id: str) -> Optional[Note]:
        """Delete a note if ``requester`` wrote it.

        Returns:
            The removed Note, or None when missing or not owned by requester
        """
        for idx, note in enumerate(self._notes):
            if note.id == note_id and note.author == requester:
                del self._notes[idx]
                try:
                    await self._save()
                except OSError:
                    self._notes.insert(idx, note)
                    raise
                logger.info(f"{requester} deleted note {note_id}")
                return note
        return None

    def near(self, lat: float, lng: float, radius_metres: float) -> List[Note]:
        """Notes within ``radius_metres`` (inclusive) of a point."""
        return [
            note for note in self._notes
            if note.has_position
            and haversine_distance(lat, lng, note.lat, note.lng) <= radius_metres
        ]

    def all(self) -> List[Note]:
        return list(self._notes)

    def to_list(self) -> List[Dict[str, Any]]:
        return [note.to_dict() for note in self._notes]

    def __len__(self) -> int:
        return len(self._notes)
