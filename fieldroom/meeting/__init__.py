"""
Meetings - location-pinned meetings with running transcripts.

Components:
- Meeting: ACTIVE/ENDED meeting state and transcript lines
- MeetingManager: start/join/end, chat recording, disconnect handling
"""

from .models import Meeting, MeetingEnd, MeetingState
from .manager import MeetingManager

__all__ = [
    "Meeting",
    "MeetingEnd",
    "MeetingState",
    "MeetingManager",
]
