"""
SQLite database manager for the prediction game.

Owns the connection lifecycle and the schema. The stores in
``foresight.game`` issue their own statements through
:meth:`DatabaseManager.get_connection`; every mutation they need is
expressible as a single atomic statement, which keeps concurrent
commands from losing updates.
"""

from __future__ import annotations

import secrets
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from foresight.errors import StoreError
from foresight.utils.logging import get_logger

logger = get_logger(__name__)

# Seconds a writer waits on a locked database before failing
BUSY_TIMEOUT = 10.0

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS questions (
        id TEXT PRIMARY KEY,
        text TEXT NOT NULL,
        created_by TEXT NOT NULL,
        created_at TEXT NOT NULL,
        end_time TEXT NOT NULL,
        message_ref TEXT,
        resolved INTEGER NOT NULL DEFAULT 0,
        outcome INTEGER,
        resolved_by TEXT,
        resolved_at TEXT,
        platform TEXT NOT NULL DEFAULT 'twitch'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS question_votes (
        question_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        choice TEXT NOT NULL CHECK (choice IN ('yes', 'no')),
        voted_at TEXT NOT NULL,
        PRIMARY KEY (question_id, user_id),
        FOREIGN KEY (question_id) REFERENCES questions(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
        total_predictions INTEGER NOT NULL DEFAULT 0,
        correct_predictions INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        CHECK (correct_predictions <= total_predictions)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_platforms (
        user_id TEXT NOT NULL,
        platform TEXT NOT NULL,
        external_id TEXT NOT NULL,
        display_name TEXT NOT NULL,
        UNIQUE (platform, external_id),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS announcements (
        id TEXT PRIMARY KEY,
        channel TEXT NOT NULL,
        author TEXT NOT NULL,
        title TEXT NOT NULL,
        card TEXT NOT NULL,
        components TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS interaction_queue (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        custom_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        username TEXT NOT NULL,
        created_at TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        result TEXT,
        error_kind TEXT,
        processed_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_questions_open ON questions(resolved, end_time)",
    "CREATE INDEX IF NOT EXISTS idx_users_xp ON users(xp DESC, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_announcements_channel ON announcements(channel, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_interaction_queue_status ON interaction_queue(status, id)",
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_time(value: datetime) -> str:
    """
    Serialize a datetime for storage.

    Fixed-width microsecond ISO strings in UTC compare correctly as
    text, which the expiry queries rely on.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def generate_id(prefix: str = "") -> str:
    """Unique id of the form ``<prefix><epoch-ms>_<8 hex chars>``."""
    return f"{prefix}{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class DatabaseManager:
    """
    SQLite database manager.

    Each call to :meth:`get_connection` opens a fresh connection, so the
    manager can be shared between the bot's coroutines and the dashboard
    process without any in-process locking.
    """

    def __init__(self, db_path: str | Path = "data/foresight.db") -> None:
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()
        logger.info("Database initialized at %s", self.db_path)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get a database connection with automatic commit/rollback.

        Yields:
            sqlite3.Connection: Database connection

        Raises:
            StoreError: If SQLite fails; other exceptions propagate unchanged
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=BUSY_TIMEOUT)
        except sqlite3.Error as e:
            logger.error("Cannot open database %s: %s", self.db_path, e)
            raise StoreError() from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Database error: %s", e)
            raise StoreError() from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Create tables and indexes."""
        with self.get_connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                conn.execute(statement)
        logger.debug("Database tables initialized")


# Global database instance
_db: Optional[DatabaseManager] = None


def get_database(db_path: str | Path | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    The first call decides the path; later calls return the same manager.
    """
    global _db
    if _db is None:
        _db = DatabaseManager(db_path) if db_path else DatabaseManager()
    return _db
