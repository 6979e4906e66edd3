"""
Prediction game chat commands.

- !predict <duration> <question> - Ask a yes/no question
- !vote [question_id] <yes|no> - Vote (newest open question by default)
- !resolve <question_id> <yes|no> - Settle your own question
- !prediction <question_id> - Status and vote counts
- !predictions - Open questions
- !xp [user] - XP and accuracy
- !leaderboard - Top players
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from twitchio.ext import commands
from twitchio.ext.commands import Context

from foresight.errors import PredictionError
from foresight.game.cards import (
    leaderboard_lines,
    question_announcement,
    question_status_line,
    resolution_summary,
    vote_reply,
)
from foresight.game.models import VoteChoice
from foresight.game.service import Player, PredictionGame
from foresight.utils.logging import get_logger
from foresight.utils.permissions import CooldownBucket, cooldown, reset_cooldown

if TYPE_CHECKING:
    from foresight.bot import ForesightBot

logger = get_logger(__name__)

CHAT_LEADERBOARD_SIZE = 5
CHAT_ACTIVE_LIMIT = 5


def player_from(ctx: Context) -> Player:
    author = ctx.author
    user_id = getattr(author, "id", None) or author.name
    return Player(id=str(user_id), name=getattr(author, "display_name", None) or author.name)


class Predictions(commands.Cog):
    """Chat front end for the prediction game."""

    def __init__(self, bot: ForesightBot) -> None:
        self.bot = bot
        self.game: PredictionGame = bot.game
        logger.info("Predictions cog initialized")

    async def _announce(self, ctx: Context, text: str) -> None:
        """Post in the predictions channel, or in the invoking channel if not joined."""
        channel = self.bot.get_channel(self.game.settings.predictions_channel)
        await (channel or ctx).send(text)

    async def _reply_error(self, ctx: Context, error: PredictionError) -> None:
        await ctx.send(f"@{ctx.author.name} {error.message}")

    # ==================== Commands ====================

    @commands.command(name="predict")
    @cooldown(rate=10.0, bucket=CooldownBucket.USER)
    async def predict_command(self, ctx: Context, duration: str = "", *, question: str = "") -> None:
        """Create a yes/no prediction: !predict 2h Will it rain tomorrow?"""
        if not duration or not question:
            reset_cooldown("predict_command", ctx)
            await ctx.send(
                f"@{ctx.author.name} Usage: !predict <duration> <question> (e.g. !predict 1d Will it rain?)"
            )
            return

        player = player_from(ctx)
        try:
            created = self.game.create(question, duration, player)
        except PredictionError as e:
            reset_cooldown("predict_command", ctx)
            await self._reply_error(ctx, e)
            return

        await self._announce(ctx, question_announcement(created, player.name, self.game.now()))
        logger.info("Prediction %s created in %s by %s", created.id, ctx.channel.name, player.name)

    @commands.command(name="vote")
    @cooldown(rate=2.0, bucket=CooldownBucket.USER)
    async def vote_command(self, ctx: Context, *args: str) -> None:
        """Vote on a prediction: !vote yes | !vote <question_id> no"""
        if len(args) == 1:
            question_id, choice_text = None, args[0]
        elif len(args) == 2:
            question_id, choice_text = args
        else:
            await ctx.send(f"@{ctx.author.name} Usage: !vote [question_id] <yes|no>")
            return

        try:
            choice = VoteChoice.parse(choice_text)
        except ValueError:
            await ctx.send(f"@{ctx.author.name} Vote with yes or no.")
            return

        try:
            if question_id is None:
                newest = self.game.newest_active()
                if newest is None:
                    await ctx.send(f"@{ctx.author.name} There are no open predictions right now.")
                    return
                question_id = newest.id
            result = self.game.vote(question_id, choice, player_from(ctx))
        except PredictionError as e:
            await self._reply_error(ctx, e)
            return

        await ctx.send(f"@{ctx.author.name} {vote_reply(result.question, result.choice)}")

    @commands.command(name="resolve")
    @cooldown(rate=3.0, bucket=CooldownBucket.USER)
    async def resolve_command(self, ctx: Context, question_id: str = "", outcome: str = "") -> None:
        """Settle your prediction: !resolve <question_id> <yes|no>"""
        if not question_id or not outcome:
            await ctx.send(f"@{ctx.author.name} Usage: !resolve <question_id> <yes|no>")
            return

        try:
            choice = VoteChoice.parse(outcome)
        except ValueError:
            await ctx.send(f"@{ctx.author.name} Resolve with yes or no.")
            return

        player = player_from(ctx)
        try:
            result = self.game.resolve(question_id, choice.as_outcome, player)
        except PredictionError as e:
            await self._reply_error(ctx, e)
            return

        await self._announce(ctx, resolution_summary(result, player.name))
        if result.failed_voters:
            await ctx.send(
                f"@{ctx.author.name} {len(result.failed_voters)} voter(s) could not be scored; "
                "check the bot logs."
            )

    @commands.command(name="prediction")
    @cooldown(rate=3.0, bucket=CooldownBucket.USER)
    async def prediction_command(self, ctx: Context, question_id: str = "") -> None:
        """Show one prediction: !prediction <question_id>"""
        if not question_id:
            await ctx.send(f"@{ctx.author.name} Usage: !prediction <question_id>")
            return
        try:
            question = self.game.questions.get(question_id)
        except PredictionError as e:
            await self._reply_error(ctx, e)
            return
        await ctx.send(question_status_line(question, self.game.now()))

    @commands.command(name="predictions")
    @cooldown(rate=10.0, bucket=CooldownBucket.CHANNEL)
    async def predictions_command(self, ctx: Context) -> None:
        """List open predictions."""
        try:
            active = self.game.questions.list_active()
        except PredictionError as e:
            await self._reply_error(ctx, e)
            return

        if not active:
            await ctx.send("No open predictions. Start one with !predict <duration> <question>")
            return

        now = self.game.now()
        lines = [question_status_line(q, now) for q in active[:CHAT_ACTIVE_LIMIT]]
        more = len(active) - CHAT_ACTIVE_LIMIT
        if more > 0:
            lines.append(f"...and {more} more")
        await ctx.send(" || ".join(lines))

    @commands.command(name="xp")
    @cooldown(rate=5.0, bucket=CooldownBucket.USER)
    async def xp_command(self, ctx: Context, username: str = "") -> None:
        """Show XP and accuracy: !xp [user]"""
        try:
            if username:
                user = self.game.users.find_by_name(username)
            else:
                user = self.game.users.get(player_from(ctx).id)
        except PredictionError as e:
            await self._reply_error(ctx, e)
            return

        await ctx.send(
            f"{user.display_name}: {user.xp} XP | "
            f"{user.correct_predictions}/{user.total_predictions} correct "
            f"({user.accuracy:.0%} accuracy)"
        )

    @commands.command(name="leaderboard", aliases=["top"])
    @cooldown(rate=15.0, bucket=CooldownBucket.CHANNEL)
    async def leaderboard_command(self, ctx: Context) -> None:
        """Show the top players."""
        try:
            top = self.game.users.top_by_xp(CHAT_LEADERBOARD_SIZE)
        except PredictionError as e:
            await self._reply_error(ctx, e)
            return

        if not top:
            await ctx.send("Nobody has scored yet. Vote on a prediction to get started!")
            return
        await ctx.send("🏆 " + " | ".join(line.replace("**", "") for line in leaderboard_lines(top)))


def prepare(bot: ForesightBot) -> None:
    """Prepare the cog for loading."""
    bot.add_cog(Predictions(bot))
