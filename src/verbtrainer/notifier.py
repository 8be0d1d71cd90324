"""Email notification when a leaderboard score is beaten (Resend API)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from html import escape
from typing import Any

import httpx

from .errors import StoreUnavailable, ValidationError

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_SENDER = "Italian Grammar <notifications@scoreboard.netrunner.run>"
SUBJECT = "Your Score Has Been Beaten!"

logger = logging.getLogger("verbtrainer.notifier")


@dataclass(frozen=True)
class DisplacementNotice:
    """Who gets told, and by whom their score was beaten."""

    recipient_email: str
    displaced_username: str
    displaced_score: int
    new_username: str
    new_score: int


def notice_from_payload(raw: Mapping[str, Any]) -> DisplacementNotice:
    """Build a notice from a request payload with email/username/score/newUsername/newScore."""
    email = raw.get("email")
    username = raw.get("username")
    score = raw.get("score")
    new_username = raw.get("newUsername")
    new_score = raw.get("newScore")
    if not email or not username or not score or not new_username or not new_score:
        raise ValidationError("Missing required fields")
    try:
        return DisplacementNotice(
            recipient_email=str(email).strip(),
            displaced_username=str(username).strip(),
            displaced_score=int(score),
            new_username=str(new_username).strip(),
            new_score=int(new_score),
        )
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Scores must be numbers") from None


def render_email(notice: DisplacementNotice) -> str:
    """Render the HTML body."""
    return (
        "<h1>Your Score Has Been Beaten!</h1>"
        f"<p>Hi {escape(notice.displaced_username)},</p>"
        f"<p>Your score of {notice.displaced_score} has been beaten by "
        f"{escape(notice.new_username)} with a score of {notice.new_score}!</p>"
        "<p>Come back and practice more to reclaim your position on the leaderboard!</p>"
        "<br/>"
        "<p>Best regards,</p>"
        "<p>Italian Grammar Practice</p>"
    )


class ResendNotifier:
    """Sends displacement emails. Failures raise; nothing is retried."""

    def __init__(
        self,
        api_key: str | None,
        *,
        sender: str = DEFAULT_SENDER,
        api_url: str = RESEND_API_URL,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key or ""
        self.sender = sender
        self.api_url = api_url
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        """Whether an API key is set."""
        return bool(self._api_key)

    def notify(self, notice: DisplacementNotice) -> dict[str, Any]:
        """Send one email and return the API response body."""
        if not notice.recipient_email or not notice.displaced_username or not notice.new_username:
            raise ValidationError("Missing required fields")
        if not self.configured:
            raise StoreUnavailable("Notifications are not configured (set RESEND_API_KEY).")

        logger.info("Sending notification to %s for user %s", notice.recipient_email, notice.displaced_username)
        try:
            response = self._client.post(
                self.api_url,
                json={
                    "from": self.sender,
                    "to": [notice.recipient_email],
                    "subject": SUBJECT,
                    "html": render_email(notice),
                },
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Notification returned HTTP %s", exc.response.status_code)
            raise StoreUnavailable(f"Failed to send notification (HTTP {exc.response.status_code}).") from exc
        except httpx.HTTPError as exc:
            logger.error("Notification request failed: %s", exc)
            raise StoreUnavailable("Failed to send notification.") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        logger.debug("Email sent: %s", body)
        return body if isinstance(body, dict) else {}

    def close(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_client:
            self._client.close()
