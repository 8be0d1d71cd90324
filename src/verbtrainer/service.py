"""Application service tying profiles, practice sessions, and the leaderboard together."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig
from .conjugation import conjugate_verb, hint_verb
from .content_loader import load_content
from .errors import StoreUnavailable, ValidationError
from .leaderboard import DEFAULT_LIMIT, LeaderboardClient, find_displaced, validate_new_score
from .models import Content, NewScore, ScoreRecord, Verb
from .notifier import DisplacementNotice, ResendNotifier
from .progress import Profile, ProgressStore, UserSettings
from .session import DEFAULT_ADVANCE_DELAY, PracticeSession, Scheduler

logger = logging.getLogger("verbtrainer.service")


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a successful score submission."""

    score: NewScore
    displaced: ScoreRecord | None
    notified: bool


class TrainerService:
    """Coordinates profile storage, practice sessions, and remote score services."""

    def __init__(
        self,
        db_path: Path | str,
        *,
        leaderboard: LeaderboardClient | None = None,
        notifier: ResendNotifier | None = None,
        content: Content | None = None,
        leaderboard_limit: int = DEFAULT_LIMIT,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize service with database path and remote clients."""
        self.content = content if content is not None else load_content()
        self.progress = ProgressStore(db_path)
        self.leaderboard = leaderboard if leaderboard is not None else LeaderboardClient(None, None)
        self.notifier = notifier if notifier is not None else ResendNotifier(None)
        self.leaderboard_limit = leaderboard_limit
        self.advance_delay = advance_delay
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def from_config(cls, config: AppConfig) -> TrainerService:
        """Build a service from runtime configuration."""
        return cls(
            config.db_path,
            leaderboard=LeaderboardClient(config.supabase_url, config.supabase_key, timeout=config.http_timeout),
            notifier=ResendNotifier(config.resend_api_key, sender=config.notify_sender, timeout=config.http_timeout),
            leaderboard_limit=config.leaderboard_limit,
            advance_delay=config.advance_delay,
        )

    def list_profiles(self) -> list[Profile]:
        """Return all profiles."""
        return self.progress.list_profiles()

    def create_profile(self, name: str) -> Profile:
        """Create profile by name."""
        return self.progress.create_profile(name.strip())

    def delete_profile(self, profile_id: int) -> bool:
        """Delete one profile by id."""
        return self.progress.delete_profile(profile_id)

    def open_session(self, profile_id: int, scheduler: Scheduler | None = None) -> PracticeSession:
        """Start a practice session backed by one profile's saved state."""
        settings = UserSettings(self.progress.for_profile(profile_id))
        return PracticeSession(
            self.content,
            settings,
            scheduler=scheduler,
            rng=self._rng,
            advance_delay=self.advance_delay,
        )

    def conjugate(self, infinitive: str) -> Verb:
        """Return the six forms of any verb, synthesizing unknown ones."""
        return conjugate_verb(infinitive, self.content.verbs, self.content.patterns)

    def hint_for(self, verb: Verb) -> Verb | None:
        """Pick a same-class model verb for the conjugation hint."""
        return hint_verb(verb, self.content.verbs, self._rng)

    def top_scores(self) -> list[ScoreRecord]:
        """Return the leaderboard.

        Raises:
            StoreUnavailable: If the leaderboard cannot be reached.
        """
        return self.leaderboard.list_top(self.leaderboard_limit)

    def submit_score(self, session: PracticeSession, username: str, email: str | None = None) -> SubmissionResult:
        """Submit the session's score and notify the player it overtakes.

        Raises:
            ValidationError: If the username is blank.
            StoreUnavailable: If the score could not be stored.
        """
        new_score = validate_new_score(
            {
                "username": username,
                "email": email,
                "score": session.total_score,
                "accuracy": session.accuracy,
                "verb_type": session.verb_type_label(),
                "total_attempts": session.total_attempts,
            }
        )

        try:
            previous_top = self.leaderboard.list_top(self.leaderboard_limit)
        except StoreUnavailable as exc:
            logger.warning("Could not load current scores before submitting: %s", exc)
            previous_top = []

        self.leaderboard.insert(new_score)

        displaced = find_displaced(previous_top, new_score.score)
        notified = False
        if displaced is not None and displaced.email:
            notice = DisplacementNotice(
                recipient_email=displaced.email,
                displaced_username=displaced.username,
                displaced_score=displaced.score,
                new_username=new_score.username,
                new_score=new_score.score,
            )
            try:
                self.notifier.notify(notice)
                notified = True
            except (StoreUnavailable, ValidationError) as exc:
                logger.warning("Score notification to %s failed: %s", displaced.username, exc)
        return SubmissionResult(score=new_score, displaced=displaced, notified=notified)

    def close(self) -> None:
        """Close resources."""
        self.progress.close()
        self.leaderboard.close()
        self.notifier.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass
