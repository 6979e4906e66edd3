"""
Announcement board.

Twitch chat messages cannot be edited after they are sent, so the
announcements the game keeps up to date (question cards, the
leaderboard) are stored as cards per channel. The bot mirrors new
announcements into chat; the dashboard serves the live cards.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from foresight.errors import ChannelUnavailable, NotFound
from foresight.utils.database import (
    DatabaseManager,
    from_db_time,
    generate_id,
    to_db_time,
    utcnow,
)
from foresight.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CardField:
    name: str
    value: str
    inline: bool = True


@dataclass(frozen=True)
class Button:
    """An interactive control; ``custom_id`` encodes the interaction."""

    custom_id: str
    label: str
    style: str = "primary"
    disabled: bool = False


@dataclass(frozen=True)
class Card:
    title: str
    description: str = ""
    fields: tuple[CardField, ...] = ()
    color: str = "#0099ff"
    footer: str = ""

    def field(self, name: str) -> Optional[CardField]:
        return next((f for f in self.fields if f.name == name), None)

    def with_field(self, name: str, value: str) -> "Card":
        """Copy of the card with one field's value replaced (or appended)."""
        if self.field(name) is None:
            return replace(self, fields=(*self.fields, CardField(name, value)))
        return replace(
            self,
            fields=tuple(replace(f, value=value) if f.name == name else f for f in self.fields),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        return cls(
            title=data["title"],
            description=data.get("description", ""),
            fields=tuple(CardField(**f) for f in data.get("fields", ())),
            color=data.get("color", "#0099ff"),
            footer=data.get("footer", ""),
        )


ButtonRows = Sequence[Sequence[Button]]


@dataclass(frozen=True)
class Announcement:
    id: str
    channel: str
    author: str
    card: Card
    components: tuple[tuple[Button, ...], ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def buttons(self) -> list[Button]:
        return [button for row in self.components for button in row]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "channel": self.channel,
            "author": self.author,
            "card": self.card.to_dict(),
            "components": [[asdict(b) for b in row] for row in self.components],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def disable_buttons(rows: ButtonRows, prefix: str = "") -> tuple[tuple[Button, ...], ...]:
    """Disable every button whose ``custom_id`` starts with ``prefix``."""
    return tuple(
        tuple(
            replace(b, disabled=True) if b.custom_id.startswith(prefix) else b
            for b in row
        )
        for row in rows
    )


class AnnouncementBoard:
    """
    Cards posted by the bot, grouped by channel.

    Only channels the bot has joined exist; anything else raises
    :class:`ChannelUnavailable`.
    """

    def __init__(
        self,
        db: DatabaseManager,
        channels: Iterable[str],
        author: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.channels = {c.lower().lstrip("#") for c in channels}
        self.author = author
        self._clock = clock

    def require_channel(self, channel: str) -> str:
        name = channel.lower().lstrip("#")
        if name not in self.channels:
            raise ChannelUnavailable(f"Channel #{name} is not available.")
        return name

    def post(self, channel: str, card: Card, components: ButtonRows = ()) -> Announcement:
        name = self.require_channel(channel)
        announcement_id = generate_id("m_")
        now = to_db_time(self._clock())
        with self.db.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO announcements
                (id, channel, author, title, card, components, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    announcement_id,
                    name,
                    self.author,
                    card.title,
                    json.dumps(card.to_dict()),
                    _dump_components(components),
                    now,
                    now,
                ),
            )
            announcement = self._load(conn, announcement_id)
        logger.debug("Posted %s '%s' in #%s", announcement_id, card.title, name)
        return announcement

    def fetch(self, channel: str, ref: str) -> Announcement:
        name = self.require_channel(channel)
        with self.db.get_connection() as conn:
            announcement = self._load(conn, ref)
        if announcement is None or announcement.channel != name:
            raise NotFound(f"Announcement {ref} not found in #{name}.")
        return announcement

    def edit(
        self,
        ref: str,
        card: Optional[Card] = None,
        components: Optional[ButtonRows] = None,
    ) -> Announcement:
        """Replace the card and/or the button rows of an announcement."""
        assignments = ["updated_at = ?"]
        params: list = [to_db_time(self._clock())]
        if card is not None:
            assignments += ["title = ?", "card = ?"]
            params += [card.title, json.dumps(card.to_dict())]
        if components is not None:
            assignments.append("components = ?")
            params.append(_dump_components(components))

        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE announcements SET {', '.join(assignments)} WHERE id = ?",
                (*params, ref),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Announcement {ref} not found.")
            return self._load(conn, ref)

    def recent(self, channel: str, limit: int = 10) -> list[Announcement]:
        """Most recent announcements in ``channel``, newest first."""
        name = self.require_channel(channel)
        with self.db.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM announcements WHERE channel = ?
                ORDER BY created_at DESC, rowid DESC LIMIT ?
                """,
                (name, limit),
            ).fetchall()
        return [_from_row(row) for row in rows]

    def _load(self, conn: sqlite3.Connection, ref: str) -> Optional[Announcement]:
        row = conn.execute("SELECT * FROM announcements WHERE id = ?", (ref,)).fetchone()
        return _from_row(row) if row else None


def _dump_components(rows: ButtonRows) -> str:
    return json.dumps([[asdict(b) for b in row] for row in rows])


def _from_row(row: sqlite3.Row) -> Announcement:
    return Announcement(
        id=row["id"],
        channel=row["channel"],
        author=row["author"],
        card=Card.from_dict(json.loads(row["card"])),
        components=tuple(
            tuple(Button(**b) for b in row_data) for row_data in json.loads(row["components"])
        ),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )
