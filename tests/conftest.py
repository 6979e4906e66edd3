"""
Shared fixtures for the prediction game tests.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src and dashboard to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent / "dashboard"))

from foresight.config import GameSettings  # noqa: E402
from foresight.utils.database import DatabaseManager  # noqa: E402

PREDICTIONS = "predictions"
LEADERBOARD = "leaderboard"
BOT_NICK = "foresightbot"


class FakeClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db(tmp_path):
    """Create a temporary database for testing."""
    return DatabaseManager(tmp_path / "foresight.db")


@pytest.fixture
def settings() -> GameSettings:
    return GameSettings(
        predictions_channel=PREDICTIONS,
        leaderboard_channel=LEADERBOARD,
        xp_award=10,
        leaderboard_update_interval=300_000,
    )


@pytest.fixture
def game(db, settings, clock):
    from foresight.game.service import PredictionGame

    return PredictionGame(db, settings, [PREDICTIONS, LEADERBOARD], BOT_NICK, clock=clock)


@pytest.fixture
def questions(db, clock):
    from foresight.game.questions import QuestionStore

    return QuestionStore(db, clock=clock)


@pytest.fixture
def users(db, clock):
    from foresight.game.users import UserStore

    return UserStore(db, clock=clock)


@pytest.fixture
def board(db, clock):
    from foresight.utils.board import AnnouncementBoard

    return AnnouncementBoard(db, [PREDICTIONS, LEADERBOARD], BOT_NICK, clock=clock)
