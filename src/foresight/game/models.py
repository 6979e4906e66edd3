"""
Records handled by the prediction game.

Questions and users are immutable snapshots; every store operation
returns a fresh snapshot read back after its write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

PLATFORM = "twitch"

MIN_DURATION = timedelta(hours=1)
MAX_DURATION = timedelta(days=7)


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"

    @classmethod
    def parse(cls, value: str) -> "VoteChoice":
        """Parse chat input such as ``yes``, ``Y`` or ``no``."""
        normalized = value.strip().lower()
        if normalized in ("yes", "y", "true"):
            return cls.YES
        if normalized in ("no", "n", "false"):
            return cls.NO
        raise ValueError(f"Not a yes/no choice: {value!r}")

    @property
    def as_outcome(self) -> bool:
        return self is VoteChoice.YES


class QuestionStatus(str, Enum):
    OPEN = "open"
    EXPIRED = "expired"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Question:
    """
    A yes/no prediction with a voting deadline.

    ``yes_voters`` and ``no_voters`` never share a member. Status is
    derived from ``resolved`` and ``end_time`` rather than stored.
    """

    id: str
    text: str
    created_by: str
    created_at: datetime
    end_time: datetime
    message_ref: Optional[str] = None
    yes_voters: frozenset[str] = field(default_factory=frozenset)
    no_voters: frozenset[str] = field(default_factory=frozenset)
    resolved: bool = False
    outcome: Optional[bool] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    platform: str = PLATFORM

    def status(self, now: datetime) -> QuestionStatus:
        if self.resolved:
            return QuestionStatus.RESOLVED
        if now >= self.end_time:
            return QuestionStatus.EXPIRED
        return QuestionStatus.OPEN

    def is_open(self, now: datetime) -> bool:
        return self.status(now) is QuestionStatus.OPEN

    def is_expired(self, now: datetime) -> bool:
        return self.status(now) is QuestionStatus.EXPIRED

    def voters_for(self, choice: VoteChoice) -> frozenset[str]:
        return self.yes_voters if choice is VoteChoice.YES else self.no_voters

    def choice_of(self, user_id: str) -> Optional[VoteChoice]:
        if user_id in self.yes_voters:
            return VoteChoice.YES
        if user_id in self.no_voters:
            return VoteChoice.NO
        return None

    @property
    def vote_count(self) -> int:
        return len(self.yes_voters) + len(self.no_voters)


@dataclass(frozen=True)
class PlatformIdentity:
    external_id: str
    display_name: str


@dataclass(frozen=True)
class User:
    """Score and accuracy record for one chat member."""

    id: str
    platforms: dict[str, PlatformIdentity]
    xp: int = 0
    total_predictions: int = 0
    correct_predictions: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def identity(self) -> Optional[PlatformIdentity]:
        return self.platforms.get(PLATFORM)

    @property
    def display_name(self) -> str:
        identity = self.identity
        return identity.display_name if identity else "Unknown User"

    @property
    def accuracy(self) -> float:
        """Fraction of resolved votes that were correct, 0.0 with no votes."""
        if not self.total_predictions:
            return 0.0
        return self.correct_predictions / self.total_predictions


@dataclass(frozen=True)
class ResolutionResult:
    """What a successful resolution changed."""

    question: Question
    correct_voters: tuple[str, ...]
    incorrect_voters: tuple[str, ...]
    failed_voters: tuple[str, ...]
    xp_award: int

    @property
    def outcome(self) -> bool:
        return bool(self.question.outcome)
