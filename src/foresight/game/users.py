"""
Per-member score and accuracy records.

Users are addressed by their external chat identity; the internal id
only links a user to their platform identities. Counters change through
``SET x = x + ?`` statements, never through a read followed by a write.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Callable, Optional

from foresight.errors import NotFound, ValidationError
from foresight.game.models import PLATFORM, PlatformIdentity, User
from foresight.utils.database import (
    DatabaseManager,
    from_db_time,
    generate_id,
    to_db_time,
    utcnow,
)
from foresight.utils.logging import get_logger

logger = get_logger(__name__)

_USER_BY_EXTERNAL_ID = (
    "SELECT user_id FROM user_platforms WHERE platform = ? AND external_id = ?"
)


class UserStore:
    """Owns the ``users`` and ``user_platforms`` tables."""

    def __init__(
        self,
        db: DatabaseManager,
        clock: Callable[[], datetime] = utcnow,
        platform: str = PLATFORM,
    ) -> None:
        self.db = db
        self._clock = clock
        self.platform = platform

    def find_or_create(self, external_id: str, display_name: str) -> User:
        """
        Register a chat member, or refresh their display name.

        Runs under ``BEGIN IMMEDIATE`` so two first votes from the same
        member cannot create two records.
        """
        now = to_db_time(self._clock())
        with self.db.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT user_id, display_name FROM user_platforms "
                "WHERE platform = ? AND external_id = ?",
                (self.platform, external_id),
            ).fetchone()

            if row:
                user_id = row["user_id"]
                if row["display_name"] != display_name:
                    conn.execute(
                        "UPDATE user_platforms SET display_name = ? "
                        "WHERE platform = ? AND external_id = ?",
                        (display_name, self.platform, external_id),
                    )
                    conn.execute(
                        "UPDATE users SET updated_at = ? WHERE id = ?", (now, user_id)
                    )
                    logger.debug("Display name of %s changed to %s", external_id, display_name)
            else:
                user_id = generate_id("u_")
                conn.execute(
                    "INSERT INTO users (id, created_at, updated_at) VALUES (?, ?, ?)",
                    (user_id, now, now),
                )
                conn.execute(
                    """
                    INSERT INTO user_platforms (user_id, platform, external_id, display_name)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, self.platform, external_id, display_name),
                )
                logger.info("Registered %s (%s) as %s", display_name, external_id, user_id)

            return self._load(conn, user_id)

    def get(self, external_id: str) -> User:
        with self.db.get_connection() as conn:
            row = conn.execute(_USER_BY_EXTERNAL_ID, (self.platform, external_id)).fetchone()
            if row is None:
                raise NotFound("That user has not played yet.")
            return self._load(conn, row["user_id"])

    def find_by_name(self, display_name: str) -> User:
        """Look a user up by display name, ignoring case and a leading '@'."""
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT user_id FROM user_platforms "
                "WHERE platform = ? AND display_name = ? COLLATE NOCASE",
                (self.platform, display_name.lstrip("@")),
            ).fetchone()
            if row is None:
                raise NotFound("That user has not played yet.")
            return self._load(conn, row["user_id"])

    def award_correct(self, external_id: str, xp_amount: int) -> User:
        """Add ``xp_amount`` XP and count one correct prediction."""
        if xp_amount < 0:
            raise ValidationError("XP awards cannot be negative.")
        return self._increment(
            external_id,
            """
            xp = xp + ?,
            correct_predictions = correct_predictions + 1,
            total_predictions = total_predictions + 1
            """,
            (xp_amount,),
        )

    def record_incorrect(self, external_id: str) -> User:
        """Count one incorrect prediction."""
        return self._increment(external_id, "total_predictions = total_predictions + 1", ())

    def top_by_xp(self, limit: int = 10) -> list[User]:
        """
        Highest-XP users first.

        Equal XP is ordered by registration time, earlier first, then id.
        """
        if limit <= 0:
            return []
        with self.db.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY xp DESC, created_at ASC, id ASC LIMIT ?",
                (limit,),
            ).fetchall()
            return [self._from_row(row, self._platforms(conn, row["id"])) for row in rows]

    def _increment(self, external_id: str, assignments: str, params: tuple) -> User:
        now = to_db_time(self._clock())
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"""
                UPDATE users SET {assignments}, updated_at = ?
                WHERE id = ({_USER_BY_EXTERNAL_ID})
                """,
                (*params, now, self.platform, external_id),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"User {external_id} is not registered.")
            row = conn.execute(_USER_BY_EXTERNAL_ID, (self.platform, external_id)).fetchone()
            return self._load(conn, row["user_id"])

    def _load(self, conn: sqlite3.Connection, user_id: str) -> Optional[User]:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._from_row(row, self._platforms(conn, user_id))

    @staticmethod
    def _platforms(conn: sqlite3.Connection, user_id: str) -> dict[str, PlatformIdentity]:
        rows = conn.execute(
            "SELECT platform, external_id, display_name FROM user_platforms WHERE user_id = ?",
            (user_id,),
        ).fetchall()
        return {
            row["platform"]: PlatformIdentity(row["external_id"], row["display_name"])
            for row in rows
        }

    @staticmethod
    def _from_row(row: sqlite3.Row, platforms: dict[str, PlatformIdentity]) -> User:
        return User(
            id=row["id"],
            platforms=platforms,
            xp=row["xp"],
            total_predictions=row["total_predictions"],
            correct_predictions=row["correct_predictions"],
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )
