"""
Configuration management for Foresight.

Loads configuration from environment variables and .env files,
validates required fields, and provides type-safe access. The options
the prediction game itself reads are grouped in :class:`GameSettings`
so the game components can be built without Twitch credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_XP_AWARD = 10
DEFAULT_LEADERBOARD_INTERVAL_MS = 300_000
MIN_LEADERBOARD_INTERVAL_MS = 1_000


@dataclass(frozen=True)
class GameSettings:
    """
    Options consumed by the prediction game components.

    Attributes:
        predictions_channel: Channel where questions are announced
        leaderboard_channel: Channel where rankings are posted
        xp_award: Points granted per correct vote
        leaderboard_update_interval: Milliseconds between periodic refreshes
    """

    predictions_channel: str
    leaderboard_channel: str
    xp_award: int = DEFAULT_XP_AWARD
    leaderboard_update_interval: int = DEFAULT_LEADERBOARD_INTERVAL_MS

    @property
    def leaderboard_update_seconds(self) -> float:
        return self.leaderboard_update_interval / 1000


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for the bot and dashboard.

    Attributes:
        client_id: Twitch application client ID
        client_secret: Twitch application client secret
        oauth_token: Bot OAuth token for chat access
        bot_nick: Bot's Twitch username
        channels: Channels to join
        owner: Bot owner's Twitch username
        game: Prediction game settings
        prefix: Command prefix (default: !)
        log_level: Logging level (default: INFO)
        log_file: Optional log file path
        database_path: SQLite database file
        dashboard_token: Shared secret for queuing dashboard interactions
    """

    client_id: str
    client_secret: str
    oauth_token: str
    bot_nick: str
    channels: list[str]
    owner: str
    game: GameSettings

    prefix: str = "!"
    log_level: str = "INFO"
    log_file: str | None = None
    database_path: str = "data/foresight.db"
    dashboard_token: str = ""

    _secrets: list[str] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        secrets = [
            self.client_id,
            self.client_secret,
            self.oauth_token,
            self.dashboard_token,
        ]
        # Frozen dataclass
        object.__setattr__(self, "_secrets", [s for s in secrets if s])

    @property
    def secrets(self) -> list[str]:
        """Secret values that must be filtered from logs."""
        return self._secrets


def _parse_int(value: str | None, default: int) -> int:
    """Parse an integer from environment variable string."""
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_channels(value: str | None) -> list[str]:
    """Parse a comma-separated channel list, dropping '#' prefixes."""
    if not value:
        return []
    channels = [ch.strip().lstrip("#").lower() for ch in value.split(",")]
    return [ch for ch in channels if ch]


def _parse_channel(value: str | None, fallback: str) -> str:
    if value and value.strip().lstrip("#"):
        return value.strip().lstrip("#").lower()
    return fallback


def load_config(env_file: str | Path | None = None) -> Config:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory and parent directories.

    Returns:
        Config: Validated configuration object

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    errors: list[str] = []

    client_id = os.getenv("TWITCH_CLIENT_ID", "")
    if not client_id:
        errors.append("TWITCH_CLIENT_ID is required")

    client_secret = os.getenv("TWITCH_CLIENT_SECRET", "")
    if not client_secret:
        errors.append("TWITCH_CLIENT_SECRET is required")

    oauth_token = os.getenv("TWITCH_OAUTH_TOKEN", "")
    if not oauth_token:
        errors.append("TWITCH_OAUTH_TOKEN is required")

    bot_nick = os.getenv("TWITCH_BOT_NICK", "")
    if not bot_nick:
        errors.append("TWITCH_BOT_NICK is required")

    channels = _parse_channels(os.getenv("TWITCH_CHANNELS"))
    if not channels:
        errors.append("TWITCH_CHANNELS is required (comma-separated list)")

    owner = os.getenv("BOT_OWNER", "")
    if not owner:
        errors.append("BOT_OWNER is required")

    default_channel = channels[0] if channels else ""
    predictions_channel = _parse_channel(os.getenv("PREDICTIONS_CHANNEL"), default_channel)
    leaderboard_channel = _parse_channel(os.getenv("LEADERBOARD_CHANNEL"), default_channel)

    xp_award = _parse_int(os.getenv("XP_AWARD"), DEFAULT_XP_AWARD)
    if xp_award <= 0:
        errors.append("XP_AWARD must be a positive integer")

    interval = _parse_int(
        os.getenv("LEADERBOARD_UPDATE_INTERVAL"), DEFAULT_LEADERBOARD_INTERVAL_MS
    )
    if interval < MIN_LEADERBOARD_INTERVAL_MS:
        errors.append(
            f"LEADERBOARD_UPDATE_INTERVAL must be at least {MIN_LEADERBOARD_INTERVAL_MS} ms"
        )

    if errors:
        error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"

    return Config(
        client_id=client_id,
        client_secret=client_secret,
        oauth_token=oauth_token,
        bot_nick=bot_nick,
        channels=channels,
        owner=owner,
        game=GameSettings(
            predictions_channel=predictions_channel,
            leaderboard_channel=leaderboard_channel,
            xp_award=xp_award,
            leaderboard_update_interval=interval,
        ),
        prefix=os.getenv("BOT_PREFIX", "!"),
        log_level=log_level,
        log_file=os.getenv("LOG_FILE") or None,
        database_path=os.getenv("DATABASE_PATH", "data/foresight.db"),
        dashboard_token=os.getenv("DASHBOARD_TOKEN", ""),
    )
