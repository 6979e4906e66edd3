"""
Leaderboard aggregation.

The leaderboard is one announcement in the leaderboard channel that is
edited in place. It is located by scanning the channel's recent
announcements for the bot's own card with the leaderboard title; if it
has scrolled out of that window a new one is posted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from foresight.config import GameSettings
from foresight.errors import PredictionError
from foresight.game.cards import LEADERBOARD_TITLE, leaderboard_card
from foresight.game.users import UserStore
from foresight.utils.board import Announcement, AnnouncementBoard
from foresight.utils.database import utcnow
from foresight.utils.logging import get_logger

logger = get_logger(__name__)


class LeaderboardAggregator:
    """Keeps the canonical leaderboard announcement current."""

    TOP_USERS = 10
    SCAN_WINDOW = 10

    def __init__(
        self,
        users: UserStore,
        board: AnnouncementBoard,
        settings: GameSettings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.users = users
        self.board = board
        self.settings = settings
        self._clock = clock

    def refresh(self) -> Optional[Announcement]:
        """
        Re-render the leaderboard.

        Never raises for store or channel problems: they are logged and
        the refresh waits for the next trigger.

        Returns:
            The edited or newly posted announcement, or None if nothing
            was published
        """
        try:
            top_users = self.users.top_by_xp(self.TOP_USERS)
            if not top_users:
                logger.info("No users found for leaderboard")
                return None

            card = leaderboard_card(top_users, self._clock())
            existing = self.find_canonical()
            if existing:
                announcement = self.board.edit(existing.id, card=card)
            else:
                announcement = self.board.post(self.settings.leaderboard_channel, card)
                logger.info(
                    "Posted new leaderboard %s in #%s",
                    announcement.id, self.settings.leaderboard_channel,
                )
        except PredictionError as e:
            logger.error("Leaderboard refresh skipped: %s", e)
            return None

        logger.debug("Leaderboard updated with %d users", len(top_users))
        return announcement

    def find_canonical(self) -> Optional[Announcement]:
        recent = self.board.recent(self.settings.leaderboard_channel, self.SCAN_WINDOW)
        return next(
            (
                a for a in recent
                if a.author == self.board.author and a.card.title == LEADERBOARD_TITLE
            ),
            None,
        )
