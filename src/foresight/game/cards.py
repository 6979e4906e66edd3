"""
Card rendering for questions and the leaderboard.

Pure functions: they build :class:`Card` values, button rows and the
one-line chat summaries, and never touch the board or the database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from foresight.game.interactions import ResolveInteraction, VoteInteraction
from foresight.game.models import Question, QuestionStatus, ResolutionResult, User, VoteChoice
from foresight.utils.board import Button, Card, CardField
from foresight.utils.durations import format_remaining

QUESTION_TITLE = "📊 Yes or No Prediction"
RESOLVED_TITLE = "📊 Prediction Resolved"
LEADERBOARD_TITLE = "🏆 Prediction Game Leaderboard"

STATUS_OPEN = "⏳ Open for predictions"
STATUS_EXPIRED = "⏰ Expired (waiting for resolution)"

COLOR_OPEN = "#0099ff"
COLOR_YES = "#00ff00"
COLOR_NO = "#ff0000"

MEDALS = ("🥇", "🥈", "🥉")


def _mention(name: str) -> str:
    return f"@{name.lstrip('@')}"


def question_card(question: Question, creator_name: str) -> Card:
    return Card(
        title=QUESTION_TITLE,
        description=f"**{question.text}**",
        fields=(
            CardField("Created By", _mention(creator_name)),
            CardField("Ends At", question.end_time.strftime("%Y-%m-%d %H:%M UTC")),
            CardField("Status", STATUS_OPEN),
            CardField("Yes Votes", str(len(question.yes_voters))),
            CardField("No Votes", str(len(question.no_voters))),
        ),
        color=COLOR_OPEN,
        footer=f"Question ID: {question.id} • Vote with the buttons below",
    )


def with_vote_counts(card: Card, question: Question) -> Card:
    return card.with_field("Yes Votes", str(len(question.yes_voters))).with_field(
        "No Votes", str(len(question.no_voters))
    )


def expired_card(card: Card) -> Card:
    return card.with_field("Status", STATUS_EXPIRED)


def resolved_card(question: Question, creator_name: str, resolver_name: str) -> Card:
    outcome = VoteChoice.YES if question.outcome else VoteChoice.NO
    winners = question.voters_for(outcome)
    return Card(
        title=RESOLVED_TITLE,
        description=f"**{question.text}**",
        fields=(
            CardField("Created By", _mention(creator_name)),
            CardField("Resolved By", _mention(resolver_name)),
            CardField("Outcome", "✅ Yes" if question.outcome else "❌ No"),
            CardField("Yes Votes", str(len(question.yes_voters))),
            CardField("No Votes", str(len(question.no_voters))),
            CardField("XP Awarded", f"{len(winners)} users earned XP"),
        ),
        color=COLOR_YES if question.outcome else COLOR_NO,
        footer=f"Question ID: {question.id}",
    )


def vote_buttons(question_id: str, disabled: bool = False) -> tuple[Button, ...]:
    return (
        Button(
            VoteInteraction(question_id, VoteChoice.YES).custom_id,
            "Vote Yes",
            style="success",
            disabled=disabled,
        ),
        Button(
            VoteInteraction(question_id, VoteChoice.NO).custom_id,
            "Vote No",
            style="danger",
            disabled=disabled,
        ),
    )


def resolve_buttons(question_id: str) -> tuple[Button, ...]:
    return (
        Button(ResolveInteraction(question_id, True).custom_id, "Resolve as Yes", style="success"),
        Button(ResolveInteraction(question_id, False).custom_id, "Resolve as No", style="danger"),
    )


def leaderboard_lines(users: Sequence[User]) -> list[str]:
    lines = []
    for index, user in enumerate(users):
        rank = MEDALS[index] if index < len(MEDALS) else f"{index + 1}."
        lines.append(
            f"{rank} {user.display_name}: **{user.xp}** XP "
            f"({user.correct_predictions} correct predictions)"
        )
    return lines


def leaderboard_card(users: Sequence[User], updated_at: datetime) -> Card:
    return Card(
        title=LEADERBOARD_TITLE,
        description="Top players ranked by XP",
        fields=(
            CardField("Rankings", "\n".join(leaderboard_lines(users)) or "No rankings yet", inline=False),
        ),
        color=COLOR_OPEN,
        footer=f"Updated {updated_at.strftime('%Y-%m-%d %H:%M UTC')}",
    )


# ==================== Chat lines ====================
# Twitch chat is plain text, so the bot mirrors cards as one-line summaries.


def question_announcement(question: Question, creator_name: str, now: datetime) -> str:
    return (
        f"📊 New prediction by {_mention(creator_name)}: {question.text} | "
        f"Closes in {format_remaining(question.end_time - now)} | "
        f"Vote with !vote {question.id} yes/no"
    )


def question_status_line(question: Question, now: datetime) -> str:
    status = question.status(now)
    if status is QuestionStatus.RESOLVED:
        state = f"resolved {'YES' if question.outcome else 'NO'}"
    elif status is QuestionStatus.EXPIRED:
        state = "expired, waiting for resolution"
    else:
        state = f"open, closes in {format_remaining(question.end_time - now)}"
    return (
        f"[{question.id}] {question.text} | {state} | "
        f"Yes: {len(question.yes_voters)} No: {len(question.no_voters)}"
    )


def vote_reply(question: Question, choice: VoteChoice) -> str:
    return (
        f"You voted {choice.value.upper()} on: {question.text} "
        f"(Yes: {len(question.yes_voters)} No: {len(question.no_voters)})"
    )


def resolution_summary(result: ResolutionResult, resolver_name: str) -> str:
    outcome = "YES" if result.outcome else "NO"
    summary = (
        f"🎉 Prediction resolved as {outcome} by {_mention(resolver_name)}: "
        f"{result.question.text} | {len(result.correct_voters)} correct "
        f"(+{result.xp_award} XP each), {len(result.incorrect_voters)} incorrect"
    )
    if not result.question.vote_count:
        summary += " | Nobody voted"
    return summary
