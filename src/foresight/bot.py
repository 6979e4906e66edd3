"""
Main Twitch bot class.

This module contains the ForesightBot class which handles:
- Connection to Twitch IRC
- Loading the prediction cogs
- Startup reconciliation and the leaderboard refresh schedule
- Graceful shutdown
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from twitchio.ext import commands

from foresight.config import Config
from foresight.game.service import PredictionGame
from foresight.utils.database import DatabaseManager, get_database
from foresight.utils.logging import get_logger
from foresight.utils.scheduler import PeriodicTask

if TYPE_CHECKING:
    from twitchio import Channel, Message

logger = get_logger(__name__)

COGS = (
    "foresight.cogs.predictions",
    "foresight.cogs.interaction_bridge",
)


class ForesightBot(commands.Bot):
    """
    Twitch chat bot running the prediction game.

    Attributes:
        config: Bot configuration
        db: Shared database manager
        game: Prediction game facade used by the cogs
        leaderboard_task: Periodic leaderboard refresh, started once ready
    """

    def __init__(self, config: Config, db: Optional[DatabaseManager] = None) -> None:
        self.config = config
        self.start_time = datetime.now(timezone.utc)
        self.db = db or get_database(config.database_path)
        self.game = PredictionGame(
            self.db,
            config.game,
            channels=config.channels,
            author=config.bot_nick.lower(),
        )
        self.leaderboard_task = PeriodicTask(
            "leaderboard refresh",
            config.game.leaderboard_update_seconds,
            self.refresh_leaderboard,
        )
        self._ready = asyncio.Event()

        super().__init__(
            token=config.oauth_token,
            client_id=config.client_id,
            nick=config.bot_nick,
            prefix=config.prefix,
            initial_channels=config.channels,
        )

        logger.info("Bot initialized for channels: %s", ", ".join(config.channels))
        self._load_cogs()

    def _load_cogs(self) -> None:
        for cog_path in COGS:
            try:
                self.load_module(cog_path)
                logger.info("Loaded cog: %s", cog_path)
            except Exception as e:
                logger.error("Failed to load cog %s: %s", cog_path, e)

    async def event_ready(self) -> None:
        """Called when the bot is ready and connected (again after reconnects)."""
        logger.info("Logged in as: %s", self.nick)
        logger.info("Connected to channels: %s", ", ".join(c.name for c in self.connected_channels))
        if self._ready.is_set():
            return

        await self.refresh_leaderboard()
        report = await self.game.sweeper.run(self.is_user_reachable)
        if report.expired:
            logger.info(
                "Expired questions: %d with resolve controls, %d voting-only, %d failed",
                report.with_controls, report.voting_only, len(report.failed),
            )
        self.leaderboard_task.start()
        self._ready.set()

    async def event_channel_joined(self, channel: Channel) -> None:
        logger.info("Joined channel: %s", channel.name)

    async def event_message(self, message: Message) -> None:
        # Ignore messages from the bot itself
        if message.echo:
            return
        await self.handle_commands(message)

    async def event_command_error(
        self,
        context: commands.Context,
        error: Exception,
    ) -> None:
        """
        Called when a command raises an error.

        Args:
            context: Command context
            error: The exception that was raised
        """
        if isinstance(error, commands.CommandNotFound):
            # Silently ignore unknown commands
            return

        if isinstance(error, commands.MissingRequiredArgument):
            await context.send(
                f"@{context.author.name} Missing required argument for "
                f"{self.config.prefix}{context.command.name}."
            )
            return

        logger.exception(
            "Error in command %s: %s",
            context.command.name if context.command else "unknown",
            error,
        )
        await context.send(
            f"@{context.author.name} An error occurred while processing your command."
        )

    async def refresh_leaderboard(self) -> None:
        self.game.leaderboard.refresh()

    async def is_user_reachable(self, user_id: str) -> bool:
        """Whether Twitch still knows the account, e.g. it was not deleted or banned."""
        users = await self.fetch_users(ids=[int(user_id)])
        return bool(users)

    async def close(self) -> None:
        await self.leaderboard_task.stop()
        await super().close()
        logger.info("Bot closed")

    @property
    def uptime(self) -> float:
        """Get bot uptime in seconds."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()
