"""
Tests for the dashboard JSON API.
"""

from __future__ import annotations

import pytest

from foresight.game.interactions import InteractionQueue
from foresight.game.models import VoteChoice
from foresight.game.service import Player

from conftest import BOT_NICK, LEADERBOARD, PREDICTIONS

TOKEN = "dashboard-test-token"


@pytest.fixture
def client(db, clock):
    from app import create_app

    app = create_app(db=db, channels=[PREDICTIONS, LEADERBOARD], author=BOT_NICK, token=TOKEN, clock=clock)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def question(game):
    question = game.create("Will it rain tomorrow?", "24h", Player("1001", "Alice"))
    game.vote(question.id, VoteChoice.YES, Player("1002", "Bob"))
    return question


class TestReadEndpoints:
    """Tests for the read-only API."""

    def test_health(self, client) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["channels"] == [LEADERBOARD, PREDICTIONS]

    def test_board(self, client, question) -> None:
        response = client.get(f"/api/board/{PREDICTIONS}")
        data = response.get_json()

        assert response.status_code == 200
        [announcement] = data["announcements"]
        assert announcement["id"] == question.message_ref
        assert announcement["components"][0][0]["custom_id"] == f"vote:yes:{question.id}"

    def test_board_unknown_channel(self, client) -> None:
        response = client.get("/api/board/elsewhere")
        assert response.status_code == 404
        assert response.get_json()["kind"] == "channel_unavailable"

    def test_question(self, client, question) -> None:
        response = client.get(f"/api/questions/{question.id}")
        data = response.get_json()["question"]

        assert data["text"] == "Will it rain tomorrow?"
        assert data["status"] == "open"
        assert data["yes_votes"] == 1
        assert data["no_votes"] == 0

    def test_question_not_found(self, client) -> None:
        response = client.get("/api/questions/q_missing")
        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_active_questions(self, client, question) -> None:
        data = client.get("/api/questions").get_json()
        assert [q["id"] for q in data["questions"]] == [question.id]

    def test_leaderboard(self, client, game, question) -> None:
        game.resolve(question.id, True, Player("1001", "Alice"))

        data = client.get("/api/leaderboard?limit=1").get_json()
        assert data["users"] == [{
            "rank": 1,
            "display_name": "Bob",
            "xp": 10,
            "correct_predictions": 1,
            "total_predictions": 1,
            "accuracy": 1.0,
        }]


class TestInteractionEndpoints:
    """Tests for queuing button presses."""

    def _post(self, client, payload: dict, token: str | None = TOKEN):
        headers = {"X-Dashboard-Token": token} if token is not None else {}
        return client.post("/api/interactions", json=payload, headers=headers)

    def test_requires_token(self, client, question) -> None:
        payload = {"custom_id": f"vote:no:{question.id}", "user_id": "1003", "username": "Carol"}
        assert self._post(client, payload, token=None).status_code == 401
        assert self._post(client, payload, token="wrong").status_code == 401

    def test_disabled_without_token(self, db, clock) -> None:
        from app import create_app

        app = create_app(db=db, channels=[PREDICTIONS], author=BOT_NICK, token="", clock=clock)
        response = app.test_client().post("/api/interactions", json={})
        assert response.status_code == 503

    def test_enqueue_and_poll(self, client, db, question) -> None:
        payload = {"custom_id": f"vote:no:{question.id}", "user_id": "1003", "username": "Carol"}
        response = self._post(client, payload)

        assert response.status_code == 202
        entry_id = response.get_json()["id"]

        status = client.get(f"/api/interactions/{entry_id}").get_json()
        assert status["status"] == "pending"

        queue = InteractionQueue(db)
        [claimed] = queue.claim_pending()
        queue.complete(claimed.id, "You voted NO")

        status = client.get(f"/api/interactions/{entry_id}").get_json()
        assert status["status"] == "done"
        assert status["result"] == "You voted NO"

    def test_missing_fields(self, client) -> None:
        response = self._post(client, {"custom_id": "vote:yes:q_1"})
        assert response.status_code == 400

    def test_unknown_custom_id(self, client) -> None:
        response = self._post(client, {"custom_id": "explode:yes:q_1", "user_id": "1", "username": "x"})
        assert response.status_code == 400
        assert response.get_json()["kind"] == "validation"

    def test_unknown_entry(self, client) -> None:
        assert client.get("/api/interactions/999").status_code == 404
