"""
Error taxonomy for the prediction game.

Every error carries a ``kind`` (stable machine-readable tag, stored with
processed interactions) and a short message that the chat layer can show
to the invoking user as-is.
"""

from __future__ import annotations


class PredictionError(Exception):
    """Base class for all prediction game failures."""

    kind = "error"
    default_message = "Something went wrong with that prediction."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PredictionError):
    """Bad user input, e.g. a duration outside the allowed window."""

    kind = "validation"
    default_message = "Invalid input."


class NotFound(PredictionError):
    """A question or user does not exist."""

    kind = "not_found"
    default_message = "That prediction does not exist."


class Unauthorized(PredictionError):
    """Someone other than the creator tried to resolve a question."""

    kind = "unauthorized"
    default_message = "Only the creator of this prediction can resolve it."


class AlreadyResolved(PredictionError):
    kind = "already_resolved"
    default_message = "This prediction has already been resolved."


class Expired(PredictionError):
    kind = "expired"
    default_message = "This prediction has expired and is no longer accepting votes."


class ChannelUnavailable(PredictionError):
    """The configured announcement or leaderboard channel is missing."""

    kind = "channel_unavailable"
    default_message = "Predictions channel not found. Please contact an administrator."


class StoreError(PredictionError):
    """The underlying database failed."""

    kind = "store"
    default_message = "The prediction database is unavailable. Please try again later."
