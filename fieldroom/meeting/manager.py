"""
Meeting Manager - lifecycle and transcripts of location-pinned meetings.

Handles:
- start / join / end transitions with membership checks
- Short-id (prefix) resolution of meeting ids
- Recording chat from participants into every meeting they belong to
- Disconnect-driven departure, which never ends a meeting
- Finalizing a transcript into a workspace file plus a system note
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fieldroom.errors import AlreadyMemberError, NotFoundError, NotMemberError, ValidationError
from fieldroom.services.notes_service import NotesStore
from fieldroom.services.persistence import WorkspaceStore

from .models import Meeting, MeetingEnd, MeetingState

logger = logging.getLogger(__name__)

SYSTEM_AUTHOR = "system"


def format_date(moment: datetime) -> str:
    """e.g. 'Sunday, 18 October 2026'."""
    return f"{moment:%A}, {moment.day} {moment:%B %Y}"


def format_time(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def transcript_file_name(meeting: Meeting, ended_at: datetime) -> str:
    """Artifact name from the end minute, disambiguated by the meeting's short id."""
    return f"meeting_{ended_at:%Y-%m-%d}_{ended_at:%H%M}_{meeting.short_id}.txt"


class MeetingManager:
    """
    Owns the active meetings of the room.

    Meetings are kept in start order, which is also the tie-break order for
    ambiguous id prefixes. Ended meetings are dropped from the registry.
    """

    def __init__(
        self,
        notes: NotesStore,
        persistence: WorkspaceStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.notes = notes
        self.persistence = persistence
        self._clock = clock
        self._meetings: Dict[str, Meeting] = {}

    def start(
        self,
        initiator: str,
        lat: Optional[float],
        lng: Optional[float],
        location_name: Optional[str] = None,
    ) -> Meeting:
        """Start a meeting with ``initiator`` as its only participant."""
        if lat is None or lng is None:
            raise ValidationError("Select a location on the map before starting a meeting.")

        now = self._clock()
        meeting = Meeting(
            lat=lat,
            lng=lng,
            location_name=location_name or f"{lat:.4f}, {lng:.4f}",
            started_by=initiator,
            started_at=now,
        )
        meeting.participants[initiator] = now
        meeting.transcript.extend([
            "MEETING TRANSCRIPT",
            "==================",
            f"Location: {location_name or f'{lat:.5f}, {lng:.5f}'}",
            f"Date: {format_date(now)}",
            f"Time: {format_time(now)}",
            f"Started by: {initiator}",
            "",
            "--- Meeting Started ---",
            "",
        ])

        self._meetings[meeting.id] = meeting
        logger.info(f"{initiator} started meeting {meeting.short_id} at {meeting.location_name}")
        return meeting

    def resolve(self, meeting_id: Optional[str]) -> Meeting:
        """Find an active meeting by exact id, else by the first matching prefix."""
        if meeting_id:
            meeting = self._meetings.get(meeting_id)
            if meeting and meeting.is_active:
                return meeting
            for candidate_id, candidate in self._meetings.items():
                if candidate.is_active and candidate_id.startswith(meeting_id):
                    return candidate
        raise NotFoundError("Meeting not found.")

    def join(self, user: str, meeting_id: Optional[str]) -> Meeting:
        meeting = self.resolve(meeting_id)
        if user in meeting.participants:
            raise AlreadyMemberError("You are already in this meeting.")

        meeting.participants[user] = self._clock()
        meeting.add_line(f"[{user} joined the meeting]")
        meeting.add_line("")
        logger.info(f"{user} joined meeting {meeting.short_id}")
        return meeting

    def record_chat(self, user: str, text: str, speaker: Optional[str] = None) -> int:
        """
        Append a line to every active meeting ``user`` participates in.

        Args:
            user: Participant whose meetings receive the line
            text: What was said
            speaker: Name shown in the transcript, defaults to ``user``

        Returns:
            Number of transcripts the line was written to
        """
        recorded = 0
        for meeting in self.active():
            if user in meeting.participants:
                meeting.add_line(f"{speaker or user}: {text}")
                recorded += 1
        return recorded

    def leave_all(self, user: str) -> List[Meeting]:
        """Remove a disconnected user from every meeting without ending any."""
        left = []
        for meeting in self.active():
            if user in meeting.participants:
                del meeting.participants[user]
                meeting.add_line(f"[{user} disconnected]")
                left.append(meeting)
        if left:
            logger.info(f"{user} disconnected from {len(left)} meeting(s)")
        return left

    async def end(self, user: str, meeting_id: Optional[str]) -> MeetingEnd:
        """
        End a meeting the user belongs to.

        The meeting is claimed (ENDING) before the transcript write, so a
        concurrent end, join or chat line cannot reach it while the file is
        being saved. A failed write puts it back to ACTIVE unchanged.
        """
        meeting = self.resolve(meeting_id)
        if user not in meeting.participants:
            raise NotMemberError("You are not in this meeting.")

        meeting.state = MeetingState.ENDING
        now = self._clock()
        participants = ", ".join(meeting.participant_list())
        footer = [
            "",
            f"--- Meeting Ended at {format_time(now)} ---",
            f"Participants: {participants}",
        ]
        file_name = transcript_file_name(meeting, now)
        meeting.transcript.extend(footer)
        try:
            await self.persistence.save_transcript(file_name, meeting.transcript_text)
        except BaseException:
            del meeting.transcript[-len(footer):]
            meeting.state = MeetingState.ACTIVE
            raise

        meeting.state = MeetingState.ENDED
        meeting.ended_at = now
        self._meetings.pop(meeting.id, None)
        logger.info(f"Meeting {meeting.short_id} ended by {user}, transcript saved: {file_name}")

        try:
            note = await self.notes.add(
                author=SYSTEM_AUTHOR,
                lat=meeting.lat,
                lng=meeting.lng,
                text=f"📋 Meeting transcript: {file_name} ({participants})",
                location_name=meeting.location_name,
                meeting_file=file_name,
            )
        except OSError as e:
            logger.error(f"Failed to save transcript note for meeting {meeting.short_id}: {e}")
            note = None
        return MeetingEnd(meeting=meeting, file_name=file_name, note=note)

    def get(self, meeting_id: str) -> Optional[Meeting]:
        return self._meetings.get(meeting_id)

    def active(self) -> List[Meeting]:
        """Active meetings in start order."""
        return [meeting for meeting in self._meetings.values() if meeting.is_active]

    def summaries(self) -> List[Dict]:
        return [meeting.summary() for meeting in self.active()]

    def __len__(self) -> int:
        return len(self.active())
