"""
Foresight Dashboard - Flask Web Application

JSON API over the prediction game: the live announcement cards, question
details and the leaderboard, plus a queue for button presses that the
bot's interaction bridge processes.
"""

from __future__ import annotations

import hmac
import os
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from foresight.errors import PredictionError
from foresight.game.interactions import InteractionQueue
from foresight.game.models import Question, User
from foresight.game.questions import QuestionStore
from foresight.game.users import UserStore
from foresight.utils.board import AnnouncementBoard
from foresight.utils.database import DatabaseManager, utcnow
from foresight.utils.logging import get_logger

logger = get_logger("dashboard")

# Load environment variables
ENV_FILE = Path(__file__).parent.parent / ".env"
load_dotenv(ENV_FILE)

TOKEN_HEADER = "X-Dashboard-Token"
MAX_LIST_LIMIT = 50

STATUS_BY_KIND = {
    "validation": 400,
    "unauthorized": 403,
    "not_found": 404,
    "channel_unavailable": 404,
    "already_resolved": 409,
    "expired": 409,
    "store": 503,
}


def safe_int(value: Any, default: int = 0, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    """Parse an int query parameter, clamped to [min_val, max_val]."""
    try:
        result = int(value)
    except (TypeError, ValueError):
        result = default
    if min_val is not None:
        result = max(min_val, result)
    if max_val is not None:
        result = min(max_val, result)
    return result


def _env_channels() -> list[str]:
    raw = os.getenv("TWITCH_CHANNELS", "")
    return [c.strip().lstrip("#").lower() for c in raw.split(",") if c.strip().lstrip("#")]


def question_json(question: Question, now: datetime) -> dict[str, Any]:
    return {
        "id": question.id,
        "text": question.text,
        "created_by": question.created_by,
        "created_at": question.created_at.isoformat(),
        "end_time": question.end_time.isoformat(),
        "status": question.status(now).value,
        "yes_votes": len(question.yes_voters),
        "no_votes": len(question.no_voters),
        "resolved": question.resolved,
        "outcome": question.outcome,
        "resolved_by": question.resolved_by,
        "resolved_at": question.resolved_at.isoformat() if question.resolved_at else None,
        "message_ref": question.message_ref,
    }


def user_json(user: User, rank: int) -> dict[str, Any]:
    return {
        "rank": rank,
        "display_name": user.display_name,
        "xp": user.xp,
        "correct_predictions": user.correct_predictions,
        "total_predictions": user.total_predictions,
        "accuracy": round(user.accuracy, 4),
    }


def create_app(
    db: Optional[DatabaseManager] = None,
    channels: Optional[list[str]] = None,
    author: Optional[str] = None,
    token: Optional[str] = None,
    clock: Callable[[], datetime] = utcnow,
) -> Flask:
    """
    Build the dashboard app.

    Arguments left out are read from the environment the same way the
    bot reads them, so both processes share one database.
    """
    app = Flask(__name__)

    db = db or DatabaseManager(os.getenv("DATABASE_PATH", "data/foresight.db"))
    channels = channels if channels is not None else _env_channels()
    author = (author or os.getenv("TWITCH_BOT_NICK", "")).lower()
    token = token if token is not None else os.getenv("DASHBOARD_TOKEN", "")

    questions = QuestionStore(db, clock=clock)
    users = UserStore(db, clock=clock)
    board = AnnouncementBoard(db, channels, author, clock=clock)
    queue = InteractionQueue(db, clock=clock)

    def token_required(f):
        """Reject requests without the shared dashboard token."""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not token:
                return jsonify({"success": False, "error": "Interactions are disabled"}), 503
            supplied = request.headers.get(TOKEN_HEADER, "")
            if not hmac.compare_digest(supplied.encode(), token.encode()):
                logger.warning("Rejected interaction with bad token from %s", request.remote_addr)
                return jsonify({"success": False, "error": "Invalid token"}), 401
            return f(*args, **kwargs)
        return decorated_function

    @app.errorhandler(PredictionError)
    def handle_prediction_error(error: PredictionError):
        return (
            jsonify({"success": False, "error": error.message, "kind": error.kind}),
            STATUS_BY_KIND.get(error.kind, 500),
        )

    @app.route("/api/health")
    def health():
        return jsonify({"success": True, "channels": sorted(board.channels)})

    @app.route("/api/board/<channel>")
    def get_board(channel: str):
        limit = safe_int(request.args.get("limit"), 10, min_val=1, max_val=MAX_LIST_LIMIT)
        announcements = board.recent(channel, limit)
        return jsonify({
            "success": True,
            "channel": channel.lower().lstrip("#"),
            "announcements": [a.to_dict() for a in announcements],
        })

    @app.route("/api/questions")
    def list_questions():
        now = clock()
        return jsonify({
            "success": True,
            "questions": [question_json(q, now) for q in questions.list_active()],
        })

    @app.route("/api/questions/<question_id>")
    def get_question(question_id: str):
        question = questions.get(question_id)
        return jsonify({"success": True, "question": question_json(question, clock())})

    @app.route("/api/leaderboard")
    def get_leaderboard():
        limit = safe_int(request.args.get("limit"), 10, min_val=1, max_val=MAX_LIST_LIMIT)
        top = users.top_by_xp(limit)
        return jsonify({
            "success": True,
            "users": [user_json(user, rank) for rank, user in enumerate(top, start=1)],
        })

    @app.route("/api/interactions", methods=["POST"])
    @token_required
    def post_interaction():
        data = request.get_json(silent=True) or {}
        custom_id = str(data.get("custom_id", "")).strip()
        user_id = str(data.get("user_id", "")).strip()
        username = str(data.get("username", "")).strip()
        if not custom_id or not user_id or not username:
            return jsonify({
                "success": False,
                "error": "custom_id, user_id and username are required",
            }), 400

        entry_id = queue.enqueue(custom_id, user_id, username)
        logger.info("Queued interaction %s from %s as #%d", custom_id, username, entry_id)
        return jsonify({"success": True, "id": entry_id, "status": "pending"}), 202

    @app.route("/api/interactions/<int:entry_id>")
    def get_interaction(entry_id: int):
        entry = queue.get(entry_id)
        if entry is None:
            return jsonify({"success": False, "error": "Not found"}), 404
        return jsonify({
            "success": True,
            "id": entry["id"],
            "custom_id": entry["custom_id"],
            "status": entry["status"],
            "result": entry["result"],
            "error_kind": entry["error_kind"],
        })

    return app
