"""Request handlers for the score endpoints, independent of any web framework."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import StoreUnavailable, ValidationError
from .leaderboard import DEFAULT_LIMIT, LeaderboardClient, validate_new_score
from .notifier import ResendNotifier, notice_from_payload

logger = logging.getLogger("verbtrainer.api")


@dataclass(frozen=True)
class ApiResponse:
    """Status code, JSON body, and extra headers."""

    status: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)


def get_scores(leaderboard: LeaderboardClient, limit: int = DEFAULT_LIMIT) -> ApiResponse:
    """GET /api/scores: top scores as JSON rows."""
    try:
        records = leaderboard.list_top(limit)
    except StoreUnavailable as exc:
        logger.error("Error loading scores: %s", exc)
        return ApiResponse(500, {"error": "Failed to load scores"})
    rows = [
        {
            "id": record.id,
            "username": record.username,
            "email": record.email,
            "score": record.score,
            "accuracy": record.accuracy,
            "verb_type": record.verb_type,
            "total_attempts": record.total_attempts,
            "created_at": record.created_at,
        }
        for record in records
    ]
    return ApiResponse(200, rows)


def submit_score(leaderboard: LeaderboardClient, payload: object) -> ApiResponse:
    """POST /api/submit-score: validate, then forward to the leaderboard."""
    if not isinstance(payload, dict):
        return ApiResponse(400, {"error": "Invalid score data"})
    try:
        new_score = validate_new_score(payload)
    except ValidationError:
        return ApiResponse(400, {"error": "Invalid score data"})
    try:
        leaderboard.insert(new_score)
    except StoreUnavailable as exc:
        logger.error("Error submitting score: %s", exc)
        return ApiResponse(500, {"error": "Failed to submit score"})
    return ApiResponse(200, {"success": True})


def notify_score(notifier: ResendNotifier, payload: object, method: str = "POST") -> ApiResponse:
    """POST /api/notify-score: send the score-beaten email."""
    if method.upper() != "POST":
        return ApiResponse(
            405,
            "Method not allowed. Please use POST.",
            {"Allow": "POST", "Content-Type": "text/plain"},
        )
    if not isinstance(payload, dict):
        return ApiResponse(400, {"error": "Missing required fields"})
    try:
        notice = notice_from_payload(payload)
    except ValidationError:
        return ApiResponse(400, {"error": "Missing required fields"})
    try:
        data = notifier.notify(notice)
    except StoreUnavailable as exc:
        logger.error("Error sending notification: %s", exc)
        return ApiResponse(500, {"error": "Failed to send notification"})
    return ApiResponse(200, data)
