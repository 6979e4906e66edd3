"""
Question persistence and state transitions.

The two writes that race with each other, a vote landing while the
creator resolves, are each a single conditional statement:

- votes are an upsert guarded by ``resolved = 0 AND end_time > now``
- resolution is a compare-and-set guarded by ``resolved = 0``

so SQLite's write serialization is the only lock involved.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Callable, Iterable, Optional

from foresight.errors import AlreadyResolved, Expired, NotFound, ValidationError
from foresight.game.models import MAX_DURATION, MIN_DURATION, PLATFORM, Question, VoteChoice
from foresight.utils.database import (
    DatabaseManager,
    from_db_time,
    generate_id,
    to_db_time,
    utcnow,
)
from foresight.utils.logging import get_logger

logger = get_logger(__name__)

MAX_QUESTION_LENGTH = 300


class QuestionStore:
    """Owns the ``questions`` and ``question_votes`` tables."""

    def __init__(
        self,
        db: DatabaseManager,
        clock: Callable[[], datetime] = utcnow,
        platform: str = PLATFORM,
    ) -> None:
        self.db = db
        self._clock = clock
        self.platform = platform

    # ==================== Creation ====================

    def create(
        self,
        text: str,
        creator_id: str,
        end_time: datetime,
        created_at: Optional[datetime] = None,
    ) -> Question:
        """
        Create an unresolved question with empty vote sets.

        Args:
            text: The yes/no prediction statement
            creator_id: External identity of the author
            end_time: Voting deadline
            created_at: Creation time, defaults to now; the duration window
                is measured from here

        Raises:
            ValidationError: Empty text or a duration outside [1 hour, 7 days]
        """
        text = text.strip()
        if not text:
            raise ValidationError("Please provide a yes/no question to predict.")
        if len(text) > MAX_QUESTION_LENGTH:
            raise ValidationError(
                f"Questions are limited to {MAX_QUESTION_LENGTH} characters."
            )

        created_at = created_at or self._clock()
        duration = end_time - created_at
        if duration < MIN_DURATION or duration > MAX_DURATION:
            raise ValidationError("Duration must be between 1 hour and 7 days.")

        question_id = generate_id("q_")
        with self.db.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO questions (id, text, created_by, created_at, end_time, platform)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    question_id,
                    text,
                    creator_id,
                    to_db_time(created_at),
                    to_db_time(end_time),
                    self.platform,
                ),
            )
            question = self._load(conn, question_id)

        logger.info("Question %s created by %s, closes %s", question_id, creator_id, end_time)
        return question

    def attach_message_ref(self, question_id: str, ref: str) -> Question:
        """Record the announcement that renders this question."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "UPDATE questions SET message_ref = ? WHERE id = ?",
                (ref, question_id),
            )
            if cursor.rowcount == 0:
                raise NotFound()
            return self._load(conn, question_id)

    # ==================== Lookup ====================

    def get(self, question_id: str) -> Question:
        with self.db.get_connection() as conn:
            question = self._load(conn, question_id)
        if question is None:
            raise NotFound()
        return question

    def list_active(self) -> list[Question]:
        """Unresolved questions still inside their voting window, newest first."""
        return self._list(
            "resolved = 0 AND end_time > ? ORDER BY created_at DESC",
            (to_db_time(self._clock()),),
        )

    def list_expired_unresolved(self) -> list[Question]:
        """Unresolved questions whose deadline has passed."""
        return self._list(
            "resolved = 0 AND end_time <= ? ORDER BY end_time",
            (to_db_time(self._clock()),),
        )

    # ==================== Vote ledger ====================

    def cast_vote(self, question_id: str, user_id: str, choice: VoteChoice) -> Question:
        """
        Put ``user_id`` in the voter set for ``choice``.

        A user already in the opposite set is moved; one already in the
        chosen set is left alone. The guard and the membership change are
        one statement, so no vote can land after resolution or deadline.

        Raises:
            NotFound: Unknown question
            AlreadyResolved: Question has been resolved
            Expired: Voting deadline has passed
        """
        now = to_db_time(self._clock())
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO question_votes (question_id, user_id, choice, voted_at)
                SELECT id, ?, ?, ? FROM questions
                WHERE id = ? AND resolved = 0 AND end_time > ?
                ON CONFLICT(question_id, user_id) DO UPDATE SET
                    choice = excluded.choice,
                    voted_at = CASE
                        WHEN question_votes.choice = excluded.choice
                        THEN question_votes.voted_at
                        ELSE excluded.voted_at
                    END
                """,
                (user_id, choice.value, now, question_id, now),
            )
            if cursor.rowcount == 0:
                raise self._vote_rejection(conn, question_id)
            question = self._load(conn, question_id)

        logger.debug("Vote %s on %s by %s", choice.value, question_id, user_id)
        return question

    def _vote_rejection(self, conn: sqlite3.Connection, question_id: str) -> Exception:
        row = conn.execute(
            "SELECT resolved FROM questions WHERE id = ?", (question_id,)
        ).fetchone()
        if row is None:
            return NotFound()
        if row["resolved"]:
            return AlreadyResolved()
        return Expired()

    # ==================== Resolution ====================

    def commit_resolution(
        self,
        question_id: str,
        outcome: bool,
        resolver_id: str,
        resolved_at: datetime,
    ) -> Question:
        """
        Mark the question resolved, only if it is not resolved yet.

        Of any number of concurrent calls for one question exactly one
        succeeds; the rest raise :class:`AlreadyResolved`.
        """
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE questions
                SET resolved = 1, outcome = ?, resolved_by = ?, resolved_at = ?
                WHERE id = ? AND resolved = 0
                """,
                (int(outcome), resolver_id, to_db_time(resolved_at), question_id),
            )
            if cursor.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM questions WHERE id = ?", (question_id,)
                ).fetchone()
                raise AlreadyResolved() if exists else NotFound()
            question = self._load(conn, question_id)

        logger.info(
            "Question %s resolved as %s by %s",
            question_id, "YES" if outcome else "NO", resolver_id,
        )
        return question

    # ==================== Row mapping ====================

    def _list(self, where: str, params: tuple) -> list[Question]:
        with self.db.get_connection() as conn:
            rows = conn.execute(f"SELECT * FROM questions WHERE {where}", params).fetchall()
            votes = self._votes_for(conn, [row["id"] for row in rows])
        return [self._from_row(row, votes.get(row["id"], ())) for row in rows]

    def _load(self, conn: sqlite3.Connection, question_id: str) -> Optional[Question]:
        row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
        if row is None:
            return None
        votes = self._votes_for(conn, [question_id])
        return self._from_row(row, votes.get(question_id, ()))

    @staticmethod
    def _votes_for(
        conn: sqlite3.Connection, question_ids: list[str]
    ) -> dict[str, list[sqlite3.Row]]:
        if not question_ids:
            return {}
        placeholders = ",".join("?" for _ in question_ids)
        rows = conn.execute(
            f"SELECT question_id, user_id, choice FROM question_votes "
            f"WHERE question_id IN ({placeholders})",
            question_ids,
        ).fetchall()
        grouped: dict[str, list[sqlite3.Row]] = {}
        for row in rows:
            grouped.setdefault(row["question_id"], []).append(row)
        return grouped

    @staticmethod
    def _from_row(row: sqlite3.Row, votes: Iterable[sqlite3.Row]) -> Question:
        yes_voters = set()
        no_voters = set()
        for vote in votes:
            (yes_voters if vote["choice"] == VoteChoice.YES.value else no_voters).add(
                vote["user_id"]
            )

        return Question(
            id=row["id"],
            text=row["text"],
            created_by=row["created_by"],
            created_at=from_db_time(row["created_at"]),
            end_time=from_db_time(row["end_time"]),
            message_ref=row["message_ref"],
            yes_voters=frozenset(yes_voters),
            no_voters=frozenset(no_voters),
            resolved=bool(row["resolved"]),
            outcome=None if row["outcome"] is None else bool(row["outcome"]),
            resolved_by=row["resolved_by"],
            resolved_at=from_db_time(row["resolved_at"]),
            platform=row["platform"],
        )
