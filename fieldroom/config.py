"""
Room configuration.

Values come from the environment (a local .env file is merged first by
python-dotenv), with defaults suitable for running next to a local
completion gateway.
"""

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {raw!r}, using {default}")
        return default


@dataclass
class RoomConfig:
    """Runtime settings for one room instance."""
    host: str = "0.0.0.0"
    port: int = 3738
    completion_api_url: str = "http://127.0.0.1:18789"
    completion_api_token: str = ""
    completion_model: str = "openclaw:main"
    completion_timeout: float = 120.0
    ai_user_id: str = "pauline"
    ai_session_user: str = "field-room"
    workspace_path: str = "./workspace"
    log_chat: bool = True
    context_messages: int = 10
    max_history: int = 100
    history_on_join: int = 20
    notes_radius_metres: float = 500.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RoomConfig":
        """Build a config from environment variables."""
        load_dotenv()
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("SYNC_PORT", 3738),
            completion_api_url=os.getenv("COMPLETION_API_URL", "http://127.0.0.1:18789").rstrip("/"),
            completion_api_token=os.getenv("COMPLETION_API_TOKEN", ""),
            completion_model=os.getenv("COMPLETION_MODEL", "openclaw:main"),
            completion_timeout=_env_float("COMPLETION_TIMEOUT", 120.0),
            ai_user_id=os.getenv("AI_USER_ID", "pauline"),
            ai_session_user=os.getenv("AI_SESSION_USER", "field-room"),
            workspace_path=os.getenv("WORKSPACE_PATH", "./workspace"),
            log_chat=os.getenv("LOG_CHAT", "true").lower() != "false",
            context_messages=_env_int("CONTEXT_MESSAGES", 10),
            max_history=_env_int("MAX_HISTORY", 100),
            history_on_join=_env_int("HISTORY_ON_JOIN", 20),
            notes_radius_metres=_env_float("NOTES_RADIUS_METRES", 500.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def completions_endpoint(self) -> str:
        return f"{self.completion_api_url}/v1/chat/completions"

    def redacted(self) -> Dict[str, Any]:
        """Config as a dict with the API token masked, for logging."""
        data = asdict(self)
        data["completion_api_token"] = "***" if self.completion_api_token else "(none)"
        return data
