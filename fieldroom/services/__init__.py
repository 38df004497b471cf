"""Room services: workspace persistence and the location notes store."""

from .notes_service import Note, NotesStore
from .persistence import WorkspaceStore

__all__ = ["Note", "NotesStore", "WorkspaceStore"]
