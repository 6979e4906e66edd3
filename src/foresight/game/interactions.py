"""
Interactive-component ids and the deferred interaction queue.

Buttons on announcements carry ids such as ``vote:yes:q_...`` or
``resolve:no:q_...``. They are decoded exactly once, at the boundary,
into :class:`VoteInteraction` or :class:`ResolveInteraction`; nothing
downstream looks at the raw string again.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from foresight.errors import ValidationError
from foresight.game.models import VoteChoice
from foresight.utils.database import DatabaseManager, to_db_time, utcnow
from foresight.utils.logging import get_logger

logger = get_logger(__name__)

VOTE_PREFIX = "vote"
RESOLVE_PREFIX = "resolve"


@dataclass(frozen=True)
class VoteInteraction:
    question_id: str
    choice: VoteChoice

    @property
    def custom_id(self) -> str:
        return f"{VOTE_PREFIX}:{self.choice.value}:{self.question_id}"


@dataclass(frozen=True)
class ResolveInteraction:
    question_id: str
    outcome: bool

    @property
    def custom_id(self) -> str:
        choice = VoteChoice.YES if self.outcome else VoteChoice.NO
        return f"{RESOLVE_PREFIX}:{choice.value}:{self.question_id}"


Interaction = Union[VoteInteraction, ResolveInteraction]


def decode_interaction(custom_id: str) -> Interaction:
    """
    Decode a component id.

    Raises:
        ValidationError: Unknown kind, bad choice or missing question id
    """
    parts = (custom_id or "").split(":", 2)
    if len(parts) != 3 or not parts[2]:
        raise ValidationError(f"Unknown interaction: {custom_id!r}")

    kind, choice_text, question_id = parts
    try:
        choice = VoteChoice(choice_text)
    except ValueError:
        raise ValidationError(f"Unknown interaction: {custom_id!r}") from None

    if kind == VOTE_PREFIX:
        return VoteInteraction(question_id, choice)
    if kind == RESOLVE_PREFIX:
        return ResolveInteraction(question_id, choice.as_outcome)
    raise ValidationError(f"Unknown interaction: {custom_id!r}")


@dataclass(frozen=True)
class QueuedInteraction:
    id: int
    custom_id: str
    user_id: str
    username: str


class InteractionQueue:
    """
    Button presses waiting for the bot, written by the dashboard.

    Entries move ``pending`` -> ``processing`` -> ``done``/``failed``.
    Claiming is a conditional update, so an entry is handled once even
    if two pollers race.
    """

    def __init__(self, db: DatabaseManager, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def enqueue(self, custom_id: str, user_id: str, username: str) -> int:
        # Reject garbage before it reaches the bot
        decode_interaction(custom_id)
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO interaction_queue (custom_id, user_id, username, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (custom_id, user_id, username, to_db_time(self._clock())),
            )
            return cursor.lastrowid

    def claim_pending(self, limit: int = 10) -> list[QueuedInteraction]:
        claimed = []
        with self.db.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM interaction_queue WHERE status = 'pending' ORDER BY id LIMIT ?",
                (limit,),
            ).fetchall()
            for row in rows:
                cursor = conn.execute(
                    "UPDATE interaction_queue SET status = 'processing' "
                    "WHERE id = ? AND status = 'pending'",
                    (row["id"],),
                )
                if cursor.rowcount:
                    claimed.append(
                        QueuedInteraction(row["id"], row["custom_id"], row["user_id"], row["username"])
                    )
        return claimed

    def complete(self, entry_id: int, result: str, error_kind: Optional[str] = None) -> None:
        with self.db.get_connection() as conn:
            conn.execute(
                """
                UPDATE interaction_queue
                SET status = ?, result = ?, error_kind = ?, processed_at = ?
                WHERE id = ?
                """,
                (
                    "failed" if error_kind else "done",
                    result,
                    error_kind,
                    to_db_time(self._clock()),
                    entry_id,
                ),
            )

    def get(self, entry_id: int) -> Optional[dict]:
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM interaction_queue WHERE id = ?", (entry_id,)
            ).fetchone()
            return dict(row) if row else None
