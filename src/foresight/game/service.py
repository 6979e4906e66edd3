"""
The prediction game facade used by the chat layer.

:class:`PredictionGame` wires the stores, the board and the engines
together and exposes the three player actions (create, vote, resolve)
plus :meth:`PredictionGame.handle` for decoded button presses. It
returns data or raises a :class:`PredictionError`; turning either into
chat text is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Union

from foresight.config import GameSettings
from foresight.errors import PredictionError
from foresight.game.cards import question_card, vote_buttons, with_vote_counts
from foresight.game.interactions import Interaction, ResolveInteraction, VoteInteraction
from foresight.game.leaderboard import LeaderboardAggregator
from foresight.game.models import Question, ResolutionResult, VoteChoice
from foresight.game.questions import QuestionStore
from foresight.game.resolution import ResolutionEngine
from foresight.game.sweeper import ExpirySweeper
from foresight.game.users import UserStore
from foresight.utils.board import AnnouncementBoard
from foresight.utils.database import DatabaseManager, utcnow
from foresight.utils.durations import parse_duration
from foresight.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Player:
    """The chat member performing an action."""

    id: str
    name: str


@dataclass(frozen=True)
class VoteResult:
    question: Question
    choice: VoteChoice

    @property
    def yes_count(self) -> int:
        return len(self.question.yes_voters)

    @property
    def no_count(self) -> int:
        return len(self.question.no_voters)


class PredictionGame:
    """Entry point for every player action."""

    def __init__(
        self,
        db: DatabaseManager,
        settings: GameSettings,
        channels: Iterable[str],
        author: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self._clock = clock
        self.questions = QuestionStore(db, clock=clock)
        self.users = UserStore(db, clock=clock)
        self.board = AnnouncementBoard(db, channels, author, clock=clock)
        self.leaderboard = LeaderboardAggregator(self.users, self.board, settings, clock=clock)
        self.resolution = ResolutionEngine(
            self.questions, self.users, self.leaderboard, settings, board=self.board, clock=clock
        )
        self.sweeper = ExpirySweeper(self.questions, self.board, settings)

    def create(self, text: str, duration: str, player: Player) -> Question:
        """
        Create a question and announce it in the predictions channel.

        Raises:
            ValidationError: Bad duration or empty question
            ChannelUnavailable: Predictions channel is not joined
        """
        span = parse_duration(duration)
        self.board.require_channel(self.settings.predictions_channel)
        self.users.find_or_create(player.id, player.name)

        now = self._clock()
        question = self.questions.create(text, player.id, now + span, created_at=now)

        announcement = self.board.post(
            self.settings.predictions_channel,
            question_card(question, player.name),
            (vote_buttons(question.id),),
        )
        return self.questions.attach_message_ref(question.id, announcement.id)

    def vote(self, question_id: str, choice: VoteChoice, player: Player) -> VoteResult:
        """
        Record a vote, switching sides if the player already voted.

        The player is registered first so resolution can always score them.
        """
        self.users.find_or_create(player.id, player.name)
        question = self.questions.cast_vote(question_id, player.id, choice)
        self._refresh_counts(question)
        return VoteResult(question, choice)

    def resolve(self, question_id: str, outcome: bool, player: Player) -> ResolutionResult:
        return self.resolution.resolve(question_id, outcome, player.id)

    def handle(
        self, interaction: Interaction, player: Player
    ) -> Union[VoteResult, ResolutionResult]:
        """Dispatch a decoded button press."""
        if isinstance(interaction, VoteInteraction):
            return self.vote(interaction.question_id, interaction.choice, player)
        if isinstance(interaction, ResolveInteraction):
            return self.resolve(interaction.question_id, interaction.outcome, player)
        raise TypeError(f"Unsupported interaction: {interaction!r}")

    def now(self) -> datetime:
        return self._clock()

    def newest_active(self) -> Question | None:
        active = self.questions.list_active()
        return active[0] if active else None

    def _refresh_counts(self, question: Question) -> None:
        if not question.message_ref:
            return
        try:
            announcement = self.board.fetch(self.settings.predictions_channel, question.message_ref)
            self.board.edit(announcement.id, card=with_vote_counts(announcement.card, question))
        except PredictionError as e:
            logger.warning("Could not update vote counts for %s: %s", question.id, e)
