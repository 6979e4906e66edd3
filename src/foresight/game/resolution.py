"""
Resolution engine.

Resolving is the only transition out of the open/expired states:

    open | expired --resolve(outcome, resolver)--> resolved

The commit is a compare-and-set in :class:`QuestionStore`; scoring
afterwards is per voter and tolerant of individual failures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from foresight.config import GameSettings
from foresight.errors import AlreadyResolved, PredictionError, Unauthorized
from foresight.game.cards import resolved_card, vote_buttons
from foresight.game.leaderboard import LeaderboardAggregator
from foresight.game.models import Question, ResolutionResult, VoteChoice
from foresight.game.questions import QuestionStore
from foresight.game.users import UserStore
from foresight.utils.board import AnnouncementBoard, disable_buttons
from foresight.utils.database import utcnow
from foresight.utils.logging import get_logger

logger = get_logger(__name__)


class ResolutionEngine:
    """
    Authorizes, commits and scores question resolutions.

    Both the ``!resolve`` command and queued dashboard button presses go
    through :meth:`resolve`, so either path changes state identically.
    """

    def __init__(
        self,
        questions: QuestionStore,
        users: UserStore,
        leaderboard: LeaderboardAggregator,
        settings: GameSettings,
        board: Optional[AnnouncementBoard] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.questions = questions
        self.users = users
        self.leaderboard = leaderboard
        self.settings = settings
        self.board = board
        self._clock = clock

    def resolve(self, question_id: str, outcome: bool, resolver_id: str) -> ResolutionResult:
        """
        Resolve a question and distribute XP.

        Preconditions are checked in order: the question exists, the
        resolver created it, it is not resolved yet. There is no deadline
        check; a creator may resolve before or after ``end_time``.

        Raises:
            NotFound: Unknown question
            Unauthorized: Resolver is not the creator
            AlreadyResolved: Question was resolved before, or by a
                concurrent call that won the commit
        """
        question = self.questions.get(question_id)
        if question.created_by != resolver_id:
            raise Unauthorized()
        if question.resolved:
            raise AlreadyResolved()

        question = self.questions.commit_resolution(
            question_id, outcome, resolver_id, self._clock()
        )

        winning = VoteChoice.YES if outcome else VoteChoice.NO
        correct = sorted(question.voters_for(winning))
        incorrect = sorted((question.yes_voters | question.no_voters) - set(correct))
        failed = []

        for user_id in correct:
            try:
                self.users.award_correct(user_id, self.settings.xp_award)
            except PredictionError as e:
                logger.error("Failed to award XP to user %s: %s", user_id, e)
                failed.append(user_id)

        for user_id in incorrect:
            try:
                self.users.record_incorrect(user_id)
            except PredictionError as e:
                logger.error("Failed to record incorrect prediction for user %s: %s", user_id, e)
                failed.append(user_id)

        logger.info(
            "Question %s scored: %d correct, %d incorrect, %d failed",
            question_id, len(correct), len(incorrect), len(failed),
        )

        self._render_resolved(question)
        self.leaderboard.refresh()

        return ResolutionResult(
            question=question,
            correct_voters=tuple(correct),
            incorrect_voters=tuple(incorrect),
            failed_voters=tuple(failed),
            xp_award=self.settings.xp_award,
        )

    def _render_resolved(self, question: Question) -> None:
        """Swap the question's card for the resolved card and disable its buttons."""
        if self.board is None or not question.message_ref:
            return
        try:
            announcement = self.board.fetch(self.settings.predictions_channel, question.message_ref)
            components = announcement.components or (vote_buttons(question.id),)
            self.board.edit(
                announcement.id,
                card=resolved_card(
                    question,
                    creator_name=self._display_name(question.created_by),
                    resolver_name=self._display_name(question.resolved_by),
                ),
                components=disable_buttons(components),
            )
        except PredictionError as e:
            logger.error("Failed to update announcement for question %s: %s", question.id, e)

    def _display_name(self, external_id: Optional[str]) -> str:
        if not external_id:
            return "Unknown User"
        try:
            return self.users.get(external_id).display_name
        except PredictionError:
            return external_id
