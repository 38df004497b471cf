"""
JSON file persistence for the room workspace.

Layout under the workspace root:
    state.json              shared map state (last write wins)
    notes.json              all location notes
    drawings/<id>.geojson   one file per drawing
    chat-logs/<date>.jsonl  append-only chat and AI response log
    meetings/<name>.txt     finalized meeting transcripts

Disk I/O runs in a worker thread so a slow disk never stalls the event loop.
Write errors propagate to the caller.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)


def _default_state() -> Dict[str, Any]:
    return {"drawings": [], "annotations": [], "users": []}


class WorkspaceStore:
    """Load/save opaque JSON blobs in the workspace directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    @property
    def state_file(self) -> Path:
        return self.root / "state.json"

    @property
    def notes_file(self) -> Path:
        return self.root / "notes.json"

    @property
    def drawings_dir(self) -> Path:
        return self.root / "drawings"

    @property
    def chat_logs_dir(self) -> Path:
        return self.root / "chat-logs"

    @property
    def meetings_dir(self) -> Path:
        return self.root / "meetings"

    async def ensure(self) -> None:
        """Create the workspace directory tree."""
        await asyncio.to_thread(self._ensure_dirs)

    def _ensure_dirs(self) -> None:
        for directory in (self.root, self.drawings_dir, self.chat_logs_dir, self.meetings_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Unreadable workspace file {path}: {e}")
            return default

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    async def load_state(self) -> Dict[str, Any]:
        state = await asyncio.to_thread(self._read_json, self.state_file, None)
        if not isinstance(state, dict):
            return _default_state()
        return state

    async def save_state(self, state: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_json, self.state_file, state)

    async def load_notes(self) -> List[Dict[str, Any]]:
        notes = await asyncio.to_thread(self._read_json, self.notes_file, [])
        if not isinstance(notes, list):
            logger.error(f"Expected a list in {self.notes_file}, ignoring contents")
            return []
        return notes

    async def save_notes(self, notes: List[Dict[str, Any]]) -> None:
        await asyncio.to_thread(self._write_json, self.notes_file, notes)

    async def save_drawing(self, drawing: Dict[str, Any]) -> Path:
        path = self.drawings_dir / f"{drawing['id']}.geojson"
        await asyncio.to_thread(self._write_json, path, drawing)
        return path

    async def append_chat_log(self, record: Dict[str, Any]) -> None:
        """Append one record to today's JSONL chat log."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        path = self.chat_logs_dir / f"{today}.jsonl"
        line = json.dumps(record, ensure_ascii=False) + "\n"
        await asyncio.to_thread(self._append_line, path, line)

    def _append_line(self, path: Path, line: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(line)

    async def save_transcript(self, name: str, text: str) -> Path:
        path = self.meetings_dir / name
        await asyncio.to_thread(self._write_text, path, text)
        return path

    def _write_text(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
