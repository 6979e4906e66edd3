"""
The crowd prediction game: questions, votes, scoring and the leaderboard.
"""

from foresight.game.models import Question, ResolutionResult, User, VoteChoice
from foresight.game.service import Player, PredictionGame, VoteResult

__all__ = [
    "Player",
    "PredictionGame",
    "Question",
    "ResolutionResult",
    "User",
    "VoteChoice",
    "VoteResult",
]
