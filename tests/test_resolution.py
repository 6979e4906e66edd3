"""
Tests for the resolution engine.

Tests:
- Authorization and precondition order
- XP and counter deltas for correct and incorrect voters
- Per-voter failures do not abort scoring
- Concurrent resolutions: exactly one wins
- Announcement re-render and leaderboard refresh
"""

from __future__ import annotations

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from foresight.errors import AlreadyResolved, NotFound, Unauthorized
from foresight.game.cards import RESOLVED_TITLE
from foresight.game.leaderboard import LeaderboardAggregator
from foresight.game.models import VoteChoice
from foresight.game.resolution import ResolutionEngine


@pytest.fixture
def leaderboard():
    return MagicMock(spec=LeaderboardAggregator)


@pytest.fixture
def engine(questions, users, leaderboard, settings, board, clock):
    return ResolutionEngine(questions, users, leaderboard, settings, board=board, clock=clock)


@pytest.fixture
def question(questions, users, clock):
    users.find_or_create("alice", "Alice")
    return questions.create("Will it rain tomorrow?", "alice", clock() + timedelta(hours=24))


def vote(users, questions, question_id, user_id, choice) -> None:
    users.find_or_create(user_id, user_id.title())
    questions.cast_vote(question_id, user_id, choice)


class TestPreconditions:
    """Tests for who may resolve and when."""

    def test_unknown_question(self, engine) -> None:
        with pytest.raises(NotFound):
            engine.resolve("q_missing", True, "alice")

    def test_non_creator_rejected(self, engine, question, questions) -> None:
        with pytest.raises(Unauthorized):
            engine.resolve(question.id, True, "bob")
        assert questions.get(question.id).resolved is False

    def test_non_creator_rejected_after_expiry(self, engine, question, clock) -> None:
        clock.advance(days=2)
        with pytest.raises(Unauthorized):
            engine.resolve(question.id, True, "bob")

    def test_creator_may_resolve_before_deadline(self, engine, question) -> None:
        result = engine.resolve(question.id, True, "alice")
        assert result.question.resolved is True

    def test_creator_may_resolve_after_deadline(self, engine, question, clock) -> None:
        clock.advance(days=2)
        result = engine.resolve(question.id, False, "alice")
        assert result.outcome is False

    @pytest.mark.parametrize("second_outcome", [True, False])
    def test_already_resolved_regardless_of_outcome(self, engine, question, second_outcome) -> None:
        engine.resolve(question.id, True, "alice")
        with pytest.raises(AlreadyResolved):
            engine.resolve(question.id, second_outcome, "alice")

    def test_unauthorized_checked_before_already_resolved(self, engine, question) -> None:
        engine.resolve(question.id, True, "alice")
        with pytest.raises(Unauthorized):
            engine.resolve(question.id, True, "bob")


class TestScoring:
    """Tests for XP distribution."""

    def test_exact_deltas(self, engine, question, questions, users) -> None:
        vote(users, questions, question.id, "bob", VoteChoice.YES)
        vote(users, questions, question.id, "carol", VoteChoice.YES)
        vote(users, questions, question.id, "dave", VoteChoice.NO)

        result = engine.resolve(question.id, True, "alice")

        assert result.correct_voters == ("bob", "carol")
        assert result.incorrect_voters == ("dave",)
        assert result.failed_voters == ()
        assert result.xp_award == 10

        for user_id in ("bob", "carol"):
            user = users.get(user_id)
            assert (user.xp, user.correct_predictions, user.total_predictions) == (10, 1, 1)
        dave = users.get("dave")
        assert (dave.xp, dave.correct_predictions, dave.total_predictions) == (0, 0, 1)

        creator = users.get("alice")
        assert (creator.xp, creator.total_predictions) == (0, 0)

    def test_no_votes(self, engine, question) -> None:
        result = engine.resolve(question.id, False, "alice")
        assert result.correct_voters == ()
        assert result.incorrect_voters == ()

    def test_switched_vote_scored_once_on_final_side(self, engine, question, questions, users) -> None:
        vote(users, questions, question.id, "bob", VoteChoice.YES)
        questions.cast_vote(question.id, "bob", VoteChoice.NO)

        result = engine.resolve(question.id, False, "alice")

        assert result.correct_voters == ("bob",)
        assert users.get("bob").total_predictions == 1

    def test_failed_voter_does_not_abort_others(self, engine, question, questions, users) -> None:
        vote(users, questions, question.id, "bob", VoteChoice.YES)
        # Vote recorded for someone with no user record
        questions.cast_vote(question.id, "ghost", VoteChoice.YES)
        vote(users, questions, question.id, "dave", VoteChoice.NO)

        result = engine.resolve(question.id, True, "alice")

        assert result.failed_voters == ("ghost",)
        assert users.get("bob").xp == 10
        assert users.get("dave").total_predictions == 1

    def test_custom_xp_award(self, questions, users, leaderboard, board, clock, question) -> None:
        from foresight.config import GameSettings

        rich = GameSettings("predictions", "leaderboard", xp_award=25)
        engine = ResolutionEngine(questions, users, leaderboard, rich, board=board, clock=clock)
        vote(users, questions, question.id, "bob", VoteChoice.NO)

        engine.resolve(question.id, False, "alice")
        assert users.get("bob").xp == 25


class TestConcurrency:
    """Concurrent resolution attempts."""

    def test_exactly_one_resolution_succeeds(self, engine, question, questions, users) -> None:
        vote(users, questions, question.id, "bob", VoteChoice.YES)
        successes = []
        conflicts = []

        def attempt(outcome: bool) -> None:
            try:
                successes.append(engine.resolve(question.id, outcome, "alice"))
            except AlreadyResolved:
                conflicts.append(outcome)

        threads = [threading.Thread(target=attempt, args=(i % 2 == 0,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(successes) == 1
        assert len(conflicts) == 7

        bob = users.get("bob")
        assert bob.total_predictions == 1
        assert bob.xp == (10 if successes[0].outcome else 0)


class TestSideEffects:
    """Rendering and leaderboard refresh after resolution."""

    def test_leaderboard_refreshed(self, engine, question, leaderboard) -> None:
        engine.resolve(question.id, True, "alice")
        leaderboard.refresh.assert_called_once()

    def test_leaderboard_not_refreshed_on_rejection(self, engine, question, leaderboard) -> None:
        with pytest.raises(Unauthorized):
            engine.resolve(question.id, True, "bob")
        leaderboard.refresh.assert_not_called()

    def test_announcement_rerendered(self, engine, question, questions, board) -> None:
        from foresight.game.cards import question_card, vote_buttons

        posted = board.post("predictions", question_card(question, "Alice"), (vote_buttons(question.id),))
        questions.attach_message_ref(question.id, posted.id)

        engine.resolve(question.id, True, "alice")

        announcement = board.fetch("predictions", posted.id)
        assert announcement.card.title == RESOLVED_TITLE
        assert announcement.card.field("Outcome").value == "✅ Yes"
        assert announcement.card.field("Resolved By").value == "@Alice"
        assert all(b.disabled for b in announcement.buttons())

    def test_missing_announcement_does_not_fail_resolution(self, engine, question, questions) -> None:
        questions.attach_message_ref(question.id, "m_gone")
        result = engine.resolve(question.id, True, "alice")
        assert result.question.resolved is True
