"""Client for the shared leaderboard table (Supabase REST)."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

import httpx

from .errors import StoreUnavailable, ValidationError
from .models import NewScore, ScoreRecord

DEFAULT_TABLE = "scores"
DEFAULT_LIMIT = 10

logger = logging.getLogger("verbtrainer.leaderboard")


def validate_new_score(raw: Mapping[str, Any]) -> NewScore:
    """Build a NewScore from a submitted payload.

    Raises:
        ValidationError: If username is missing/blank or score is not numeric.
    """
    username = raw.get("username")
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("Invalid score data: username is required.")
    score = raw.get("score")
    if isinstance(score, bool) or not isinstance(score, int | float):
        raise ValidationError("Invalid score data: score must be a number.")
    if not math.isfinite(score):
        raise ValidationError("Invalid score data: score must be finite.")

    email = raw.get("email")
    email_text = email.strip() if isinstance(email, str) else ""
    return NewScore(
        username=username.strip(),
        email=email_text or None,
        score=int(score),
        accuracy=_as_int(raw.get("accuracy")),
        verb_type=str(raw.get("verb_type") or "all"),
        total_attempts=_as_int(raw.get("total_attempts")),
    )


class LeaderboardClient:
    """Reads and inserts leaderboard rows over HTTP."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        *,
        table: str = DEFAULT_TABLE,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self._api_key = api_key or ""
        self.table = table
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        """Whether both URL and key are set."""
        return bool(self.base_url and self._api_key)

    def _endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _require_configured(self) -> None:
        if not self.configured:
            raise StoreUnavailable("Leaderboard is not configured (set SUPABASE_URL and SUPABASE_SERVICE_KEY).")

    def list_top(self, limit: int = DEFAULT_LIMIT) -> list[ScoreRecord]:
        """Return the top scores, highest first."""
        self._require_configured()
        logger.debug("Fetching top %d scores", limit)
        try:
            response = self._client.get(
                self._endpoint(),
                params={"select": "*", "order": "score.desc", "limit": str(limit)},
                headers=self._headers(),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Leaderboard returned HTTP %s", exc.response.status_code)
            raise StoreUnavailable(f"Failed to load scores (HTTP {exc.response.status_code}).") from exc
        except httpx.HTTPError as exc:
            logger.error("Leaderboard request failed: %s", exc)
            raise StoreUnavailable("Failed to load scores.") from exc
        except ValueError as exc:
            raise StoreUnavailable("Leaderboard returned invalid JSON.") from exc

        if not isinstance(payload, list):
            raise StoreUnavailable("Leaderboard returned an unexpected payload.")
        records = [_record_from_dict(item) for item in payload if isinstance(item, dict)]
        records.sort(key=lambda item: item.score, reverse=True)
        logger.debug("Fetched %d scores", len(records))
        return records[:limit]

    def insert(self, new_score: NewScore) -> None:
        """Insert one score row."""
        if not new_score.username.strip():
            raise ValidationError("Invalid score data: username is required.")
        self._require_configured()
        row = {
            "username": new_score.username,
            "email": new_score.email,
            "score": new_score.score,
            "accuracy": new_score.accuracy,
            "verb_type": new_score.verb_type,
            "total_attempts": new_score.total_attempts,
        }
        try:
            response = self._client.post(
                self._endpoint(),
                json=[row],
                headers={**self._headers(), "Prefer": "return=minimal"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Score insert returned HTTP %s", exc.response.status_code)
            raise StoreUnavailable(f"Failed to submit score (HTTP {exc.response.status_code}).") from exc
        except httpx.HTTPError as exc:
            logger.error("Score insert failed: %s", exc)
            raise StoreUnavailable("Failed to submit score.") from exc
        logger.info("Submitted score %d for %s", new_score.score, new_score.username)

    def close(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_client:
            self._client.close()


def find_displaced(top: list[ScoreRecord], new_score: int) -> ScoreRecord | None:
    """Return the highest-ranked entry that a new score overtakes."""
    for record in sorted(top, key=lambda item: item.score, reverse=True):
        if record.score < new_score:
            return record
    return None


def _record_from_dict(raw: dict[str, Any]) -> ScoreRecord:
    """Build a score record from one REST row."""
    email = raw.get("email")
    return ScoreRecord(
        id=str(raw.get("id", "")),
        username=str(raw.get("username", "")),
        email=str(email) if email else None,
        score=_as_int(raw.get("score")),
        accuracy=_as_int(raw.get("accuracy")),
        verb_type=str(raw.get("verb_type") or ""),
        total_attempts=_as_int(raw.get("total_attempts")),
        created_at=str(raw.get("created_at") or ""),
    )


def _as_int(value: object) -> int:
    """Coerce a numeric field, treating junk as zero."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            return _as_int(float(value))
        except ValueError:
            return 0
    return 0
