"""
Tests for environment-driven configuration.

Run with:
    pytest fieldroom/tests/test_config.py -v
"""

import pytest

from fieldroom.config import RoomConfig


ENV_VARS = [
    "HOST", "SYNC_PORT", "COMPLETION_API_URL", "COMPLETION_API_TOKEN",
    "COMPLETION_MODEL", "COMPLETION_TIMEOUT", "AI_USER_ID", "AI_SESSION_USER",
    "WORKSPACE_PATH", "LOG_CHAT", "CONTEXT_MESSAGES", "MAX_HISTORY",
    "HISTORY_ON_JOIN", "NOTES_RADIUS_METRES", "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv from picking up a developer's .env
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("fieldroom.config.load_dotenv", lambda: False)
    return monkeypatch


class TestRoomConfig:

    def test_defaults(self, clean_env):
        config = RoomConfig.from_env()

        assert config.port == 3738
        assert config.ai_user_id == "pauline"
        assert config.completion_model == "openclaw:main"
        assert config.context_messages == 10
        assert config.max_history == 100
        assert config.history_on_join == 20
        assert config.notes_radius_metres == 500.0
        assert config.log_chat is True

    def test_overrides(self, clean_env):
        clean_env.setenv("SYNC_PORT", "9000")
        clean_env.setenv("AI_USER_ID", "atlas")
        clean_env.setenv("COMPLETION_API_URL", "https://gateway.example/")
        clean_env.setenv("CONTEXT_MESSAGES", "4")
        clean_env.setenv("LOG_LEVEL", "debug")

        config = RoomConfig.from_env()

        assert config.port == 9000
        assert config.ai_user_id == "atlas"
        assert config.completions_endpoint == "https://gateway.example/v1/chat/completions"
        assert config.context_messages == 4
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("value,expected", [
        ("false", False),
        ("FALSE", False),
        ("true", True),
        ("0", True),
        ("", True),
    ])
    def test_log_chat_only_disabled_by_false(self, clean_env, value, expected):
        clean_env.setenv("LOG_CHAT", value)

        assert RoomConfig.from_env().log_chat is expected

    def test_invalid_numbers_fall_back_to_defaults(self, clean_env):
        clean_env.setenv("SYNC_PORT", "not-a-port")
        clean_env.setenv("NOTES_RADIUS_METRES", "wide")

        config = RoomConfig.from_env()

        assert config.port == 3738
        assert config.notes_radius_metres == 500.0

    def test_redacted_masks_token(self):
        assert RoomConfig(completion_api_token="s3cret").redacted()["completion_api_token"] == "***"
        assert RoomConfig().redacted()["completion_api_token"] == "(none)"
