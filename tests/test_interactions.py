"""
Tests for interaction ids and the dashboard interaction queue.
"""

from __future__ import annotations

import pytest

from foresight.errors import ValidationError
from foresight.game.interactions import (
    InteractionQueue,
    ResolveInteraction,
    VoteInteraction,
    decode_interaction,
)
from foresight.game.models import VoteChoice


class TestDecodeInteraction:
    """Tests for decode_interaction."""

    def test_vote(self) -> None:
        assert decode_interaction("vote:yes:q_1_ab") == VoteInteraction("q_1_ab", VoteChoice.YES)
        assert decode_interaction("vote:no:q_1_ab") == VoteInteraction("q_1_ab", VoteChoice.NO)

    def test_resolve(self) -> None:
        assert decode_interaction("resolve:yes:q_1_ab") == ResolveInteraction("q_1_ab", True)
        assert decode_interaction("resolve:no:q_1_ab") == ResolveInteraction("q_1_ab", False)

    def test_custom_id_matches_decoder(self) -> None:
        for interaction in (
            VoteInteraction("q_9", VoteChoice.NO),
            ResolveInteraction("q_9", True),
        ):
            assert decode_interaction(interaction.custom_id) == interaction

    @pytest.mark.parametrize(
        "custom_id",
        ["", "vote", "vote:yes", "vote:yes:", "vote:maybe:q_1", "cancel:yes:q_1", None],
    )
    def test_invalid(self, custom_id) -> None:
        with pytest.raises(ValidationError):
            decode_interaction(custom_id)


class TestInteractionQueue:
    """Tests for InteractionQueue."""

    @pytest.fixture
    def queue(self, db, clock):
        return InteractionQueue(db, clock=clock)

    def test_enqueue_rejects_unknown_ids(self, queue) -> None:
        with pytest.raises(ValidationError):
            queue.enqueue("launch:yes:q_1", "1001", "alice")

    def test_claim_then_complete(self, queue) -> None:
        entry_id = queue.enqueue("vote:yes:q_1", "1001", "alice")
        assert queue.get(entry_id)["status"] == "pending"

        [claimed] = queue.claim_pending()
        assert claimed.id == entry_id
        assert claimed.custom_id == "vote:yes:q_1"
        assert queue.get(entry_id)["status"] == "processing"

        queue.complete(entry_id, "You voted YES")
        entry = queue.get(entry_id)
        assert entry["status"] == "done"
        assert entry["result"] == "You voted YES"
        assert entry["error_kind"] is None

    def test_failed_completion(self, queue) -> None:
        entry_id = queue.enqueue("resolve:no:q_1", "1001", "alice")
        queue.claim_pending()
        queue.complete(entry_id, "That prediction does not exist.", "not_found")

        entry = queue.get(entry_id)
        assert entry["status"] == "failed"
        assert entry["error_kind"] == "not_found"

    def test_entries_claimed_once_in_order(self, queue) -> None:
        ids = [queue.enqueue(f"vote:yes:q_{i}", "1001", "alice") for i in range(3)]

        assert [e.id for e in queue.claim_pending(limit=2)] == ids[:2]
        assert [e.id for e in queue.claim_pending()] == ids[2:]
        assert queue.claim_pending() == []

    def test_get_unknown(self, queue) -> None:
        assert queue.get(12345) is None
