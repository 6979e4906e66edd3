"""
Startup reconciliation of questions that expired while the bot was offline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable

from foresight.config import GameSettings
from foresight.errors import NotFound, PredictionError
from foresight.game.cards import expired_card, resolve_buttons, vote_buttons
from foresight.game.interactions import VOTE_PREFIX
from foresight.game.models import Question
from foresight.game.questions import QuestionStore
from foresight.utils.board import AnnouncementBoard, disable_buttons
from foresight.utils.logging import get_logger

logger = get_logger(__name__)

ReachabilityCheck = Callable[[str], Awaitable[bool]]


@dataclass
class SweepReport:
    expired: int = 0
    with_controls: int = 0
    voting_only: int = 0
    failed: list[str] = field(default_factory=list)


class ExpirySweeper:
    """
    Marks expired, unresolved questions on the board.

    Voting controls are disabled on every such question. Resolution
    controls are added only when the creator can still be reached;
    otherwise the question waits for manual intervention.
    """

    def __init__(
        self,
        questions: QuestionStore,
        board: AnnouncementBoard,
        settings: GameSettings,
    ) -> None:
        self.questions = questions
        self.board = board
        self.settings = settings

    async def run(self, is_creator_reachable: ReachabilityCheck) -> SweepReport:
        report = SweepReport()
        try:
            expired = self.questions.list_expired_unresolved()
        except PredictionError as e:
            logger.error("Failed to check for expired questions: %s", e)
            return report

        report.expired = len(expired)
        if expired:
            logger.info("Found %d expired but unresolved questions", len(expired))

        for question in expired:
            try:
                reachable = await self._reconcile(question, is_creator_reachable)
            except PredictionError as e:
                logger.error("Failed to update expired question %s: %s", question.id, e)
                report.failed.append(question.id)
                continue

            if reachable:
                report.with_controls += 1
            else:
                report.voting_only += 1

        return report

    async def _reconcile(self, question: Question, is_creator_reachable: ReachabilityCheck) -> bool:
        if not question.message_ref:
            raise NotFound("Question has no announcement.")

        announcement = self.board.fetch(self.settings.predictions_channel, question.message_ref)

        # Drop resolve rows from an earlier sweep before deciding again
        vote_rows = [
            row for row in announcement.components
            if any(b.custom_id.startswith(f"{VOTE_PREFIX}:") for b in row)
        ] or [vote_buttons(question.id)]
        rows = list(disable_buttons(vote_rows, prefix=f"{VOTE_PREFIX}:"))

        reachable = await self._check_reachable(question, is_creator_reachable)
        if reachable:
            rows.append(resolve_buttons(question.id))
        else:
            logger.info(
                "Creator of %s is unreachable; voting disabled, awaiting manual resolution",
                question.id,
            )

        self.board.edit(announcement.id, card=expired_card(announcement.card), components=rows)
        return reachable

    @staticmethod
    async def _check_reachable(question: Question, is_creator_reachable: ReachabilityCheck) -> bool:
        try:
            return await is_creator_reachable(question.created_by)
        except Exception as e:
            logger.warning("Could not look up creator %s: %s", question.created_by, e)
            return False
