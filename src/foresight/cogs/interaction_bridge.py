"""
Dashboard-to-bot interaction bridge.

Button presses made on the dashboard are queued in the database; this cog
claims them, runs them through the same game methods as the chat
commands, and stores the outcome for the dashboard to read back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from twitchio.ext import commands

from foresight.errors import PredictionError
from foresight.game.cards import resolution_summary, vote_reply
from foresight.game.interactions import InteractionQueue, QueuedInteraction, decode_interaction
from foresight.game.models import ResolutionResult
from foresight.game.service import Player, PredictionGame
from foresight.utils.logging import get_logger
from foresight.utils.scheduler import PeriodicTask

if TYPE_CHECKING:
    from foresight.bot import ForesightBot

logger = get_logger(__name__)

POLL_INTERVAL = 2.0
BATCH_SIZE = 10


class InteractionBridge(commands.Cog):
    """Processes the dashboard's interaction queue."""

    def __init__(self, bot: ForesightBot) -> None:
        self.bot = bot
        self.game: PredictionGame = bot.game
        self.queue = InteractionQueue(bot.db)
        self._poller = PeriodicTask("interaction queue", POLL_INTERVAL, self.process_pending)

    @commands.Cog.event()
    async def event_ready(self) -> None:
        """Start polling once connected."""
        self._poller.start()

    async def cog_unload(self) -> None:
        await self._poller.stop()

    async def process_pending(self) -> int:
        """Handle every claimable entry; returns how many were processed."""
        entries = self.queue.claim_pending(BATCH_SIZE)
        for entry in entries:
            await self._process(entry)
        return len(entries)

    async def _process(self, entry: QueuedInteraction) -> None:
        player = Player(entry.user_id, entry.username)
        try:
            interaction = decode_interaction(entry.custom_id)
            result = self.game.handle(interaction, player)
        except PredictionError as e:
            logger.info(
                "Interaction %s from %s rejected (%s): %s",
                entry.custom_id, entry.username, e.kind, e.message,
            )
            self.queue.complete(entry.id, e.message, e.kind)
            return
        except Exception as e:
            logger.error("Interaction %s from %s failed: %s", entry.custom_id, entry.username, e, exc_info=True)
            self.queue.complete(entry.id, "Something went wrong, please try again.", PredictionError.kind)
            return

        if isinstance(result, ResolutionResult):
            summary = resolution_summary(result, player.name)
            self.queue.complete(entry.id, summary)
            await self._announce(summary)
        else:
            self.queue.complete(entry.id, vote_reply(result.question, result.choice))
        logger.debug("Interaction %s from %s processed", entry.custom_id, entry.username)

    async def _announce(self, text: str) -> None:
        channel = self.bot.get_channel(self.game.settings.predictions_channel)
        if channel is None:
            logger.warning("Not connected to #%s; announcement skipped", self.game.settings.predictions_channel)
            return
        try:
            await channel.send(text)
        except Exception as e:
            logger.warning("Could not announce in #%s: %s", self.game.settings.predictions_channel, e)


def prepare(bot: ForesightBot) -> None:
    """Prepare the cog for loading."""
    bot.add_cog(InteractionBridge(bot))
