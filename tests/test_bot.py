"""
Tests for the Twitch bot.

These tests verify:
- Configuration loading
- Logging secret filtering
- Command cooldowns
- Bot instantiation
"""

from __future__ import annotations

import logging
import os
from unittest.mock import MagicMock, patch

import pytest

REQUIRED_ENV = {
    "TWITCH_CLIENT_ID": "test_client_id_12345",
    "TWITCH_CLIENT_SECRET": "test_client_secret_12345",
    "TWITCH_OAUTH_TOKEN": "oauth:test_token_12345",
    "TWITCH_BOT_NICK": "testbot",
    "TWITCH_CHANNELS": "#Channel1, channel2",
    "BOT_OWNER": "testowner",
}

OPTIONAL_ENV = [
    "PREDICTIONS_CHANNEL",
    "LEADERBOARD_CHANNEL",
    "XP_AWARD",
    "LEADERBOARD_UPDATE_INTERVAL",
    "DASHBOARD_TOKEN",
    "DATABASE_PATH",
    "LOG_LEVEL",
    "LOG_FILE",
    "BOT_PREFIX",
]


@pytest.fixture
def env():
    """Environment with only the variables a test sets; no .env file is read."""
    with patch.dict(os.environ, REQUIRED_ENV, clear=False), patch("foresight.config.load_dotenv"):
        for var in OPTIONAL_ENV:
            os.environ.pop(var, None)
        yield os.environ


class TestConfig:
    """Tests for configuration loading."""

    def test_missing_required_fields(self, env) -> None:
        from foresight.config import load_config

        for var in REQUIRED_ENV:
            env.pop(var)

        with pytest.raises(ValueError) as exc_info:
            load_config()

        message = str(exc_info.value)
        assert "Configuration errors" in message
        assert "TWITCH_CLIENT_ID is required" in message
        assert "BOT_OWNER is required" in message

    def test_defaults(self, env) -> None:
        from foresight.config import load_config

        config = load_config()

        assert config.channels == ["channel1", "channel2"]
        assert config.prefix == "!"
        assert config.database_path == "data/foresight.db"
        assert config.game.predictions_channel == "channel1"
        assert config.game.leaderboard_channel == "channel1"
        assert config.game.xp_award == 10
        assert config.game.leaderboard_update_interval == 300_000
        assert config.game.leaderboard_update_seconds == 300.0

    def test_game_settings_from_env(self, env) -> None:
        from foresight.config import load_config

        env.update({
            "PREDICTIONS_CHANNEL": "#Channel2",
            "LEADERBOARD_CHANNEL": "channel2",
            "XP_AWARD": "25",
            "LEADERBOARD_UPDATE_INTERVAL": "60000",
        })
        config = load_config()

        assert config.game.predictions_channel == "channel2"
        assert config.game.leaderboard_channel == "channel2"
        assert config.game.xp_award == 25
        assert config.game.leaderboard_update_seconds == 60.0

    @pytest.mark.parametrize(
        "var, value, error",
        [
            ("XP_AWARD", "0", "XP_AWARD must be a positive integer"),
            ("XP_AWARD", "-3", "XP_AWARD must be a positive integer"),
            ("LEADERBOARD_UPDATE_INTERVAL", "500", "LEADERBOARD_UPDATE_INTERVAL must be at least"),
        ],
    )
    def test_invalid_game_settings(self, env, var, value, error) -> None:
        from foresight.config import load_config

        env[var] = value
        with pytest.raises(ValueError, match=error):
            load_config()

    def test_invalid_log_level_falls_back(self, env) -> None:
        from foresight.config import load_config

        env["LOG_LEVEL"] = "chatty"
        assert load_config().log_level == "INFO"

    def test_secrets_tracked(self, env) -> None:
        from foresight.config import load_config

        env["DASHBOARD_TOKEN"] = "dashboard_secret"
        secrets = load_config().secrets

        assert "test_client_secret_12345" in secrets
        assert "oauth:test_token_12345" in secrets
        assert "dashboard_secret" in secrets


class TestLogging:
    """Tests for logging utilities."""

    def _record(self, msg: str, args: tuple = ()) -> logging.LogRecord:
        return logging.LogRecord("test", logging.INFO, "", 0, msg, args, None)

    def test_secret_filter_redacts_message_and_args(self) -> None:
        from foresight.utils.logging import SecretFilter

        record = self._record("Token is mysecret123 for %s", ("anotherSecret",))
        SecretFilter(["mysecret123", "anotherSecret"]).filter(record)

        assert "mysecret123" not in record.getMessage()
        assert "anotherSecret" not in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    def test_secret_filter_ignores_short_secrets(self) -> None:
        from foresight.utils.logging import SecretFilter

        record = self._record("Short ab should not be filtered")
        SecretFilter(["ab", ""]).filter(record)
        assert "ab" in record.msg

    def test_get_logger_namespace(self) -> None:
        from foresight.utils.logging import get_logger

        assert get_logger("dashboard").name == "foresight.dashboard"
        assert get_logger("foresight.game").name == "foresight.game"


class TestPermissions:
    """Tests for command cooldowns."""

    def _ctx(self, user: str = "testuser", channel: str = "testchannel") -> MagicMock:
        ctx = MagicMock()
        ctx.channel.name = channel
        ctx.author.name = user
        return ctx

    def test_cooldown_manager_tracks_cooldowns(self) -> None:
        from foresight.utils.permissions import CooldownBucket, CooldownManager

        now = [100.0]
        manager = CooldownManager(clock=lambda: now[0])
        ctx = self._ctx()

        assert manager.remaining("vote", ctx, 5.0, CooldownBucket.USER) == 0
        manager.touch("vote", ctx, CooldownBucket.USER)
        assert manager.remaining("vote", ctx, 5.0, CooldownBucket.USER) == 5.0

        now[0] += 3
        assert manager.remaining("vote", ctx, 5.0, CooldownBucket.USER) == 2.0
        assert manager.remaining("vote", self._ctx(user="other"), 5.0, CooldownBucket.USER) == 0
        assert manager.remaining("vote", self._ctx(user="other"), 5.0, CooldownBucket.CHANNEL) == 0

        manager.reset("vote", ctx, CooldownBucket.USER)
        assert manager.remaining("vote", ctx, 5.0, CooldownBucket.USER) == 0

    def test_bucket_keys(self) -> None:
        from foresight.utils.permissions import CooldownBucket, CooldownManager

        ctx = self._ctx()
        assert CooldownManager.bucket_key(ctx, CooldownBucket.USER) == "testchannel:testuser"
        assert CooldownManager.bucket_key(ctx, CooldownBucket.CHANNEL) == "testchannel"
        assert CooldownManager.bucket_key(ctx, CooldownBucket.GLOBAL) == "global"


class TestBotInstantiation:
    """Tests for bot instantiation."""

    @pytest.fixture
    def config(self, tmp_path):
        from foresight.config import Config, GameSettings

        return Config(
            client_id="test_client_id_12345",
            client_secret="test_client_secret_12345",
            oauth_token="oauth:test_token_12345",
            bot_nick="testbot",
            channels=["testchannel"],
            owner="testowner",
            game=GameSettings("testchannel", "testchannel", leaderboard_update_interval=60_000),
            database_path=str(tmp_path / "bot.db"),
        )

    def test_bot_can_be_created_with_config(self, config) -> None:
        from foresight.bot import ForesightBot
        from foresight.utils.database import DatabaseManager

        bot = ForesightBot(config, db=DatabaseManager(config.database_path))

        assert bot.config == config
        assert bot.config.bot_nick == "testbot"
        assert bot.game.board.author == "testbot"
        assert bot.leaderboard_task.interval == 60.0
        assert bot.leaderboard_task.running is False
        assert bot.uptime >= 0
