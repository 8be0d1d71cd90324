"""Practice session state and transitions."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .cards import build_deck
from .evaluator import DiffSegment, Verdict, evaluate, highlight_differences
from .models import Card, Content, Verb
from .progress import SavedProgress, UiPreferences, UserSettings

DEFAULT_ADVANCE_DELAY = 1.0

logger = logging.getLogger("verbtrainer.session")


class Phase(str, Enum):
    """Where the current card is in its check/reveal cycle."""

    TYPING = "typing"
    CHECKED = "checked"
    REVEALED = "revealed"


class Scheduler(Protocol):
    """Runs a callback after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


class SleepScheduler:
    """Blocking scheduler for the single-threaded terminal UI."""

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self._sleep(delay)
        callback()


class ManualScheduler:
    """Collects callbacks until `run_pending` is called."""

    def __init__(self) -> None:
        self.pending: list[tuple[float, Callable[[], None]]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self.pending.append((delay, callback))

    def run_pending(self) -> int:
        """Fire every queued callback in scheduling order."""
        queued = self.pending
        self.pending = []
        for _, callback in queued:
            callback()
        return len(queued)


@dataclass(frozen=True)
class Feedback:
    """Result of checking the current card."""

    verdict: Verdict
    user_answer: str
    expected: str
    diff: tuple[DiffSegment, ...]


class PracticeSession:
    """Owns practice state and applies every transition to it."""

    def __init__(
        self,
        content: Content,
        settings: UserSettings | None = None,
        *,
        scheduler: Scheduler | None = None,
        rng: random.Random | None = None,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
    ) -> None:
        self.content = content
        self.settings = settings if settings is not None else UserSettings()
        self._scheduler: Scheduler = scheduler if scheduler is not None else SleepScheduler()
        self._rng = rng if rng is not None else random.Random()
        self.advance_delay = advance_delay

        known = {verb.infinitive for verb in content.verbs}
        saved_selection = self.settings.get_selected_verbs()
        if saved_selection is None:
            self._selected = [verb.infinitive for verb in content.verbs]
        else:
            self._selected = [item for item in saved_selection if item in known]

        saved = self.settings.get_progress()
        self.total_score = saved.total_score
        self.total_attempts = saved.total_attempts
        self._mastered: set[str] = {key for key in saved.answered_correctly if key.split(":", 1)[0] in known}

        preferences = self.settings.get_ui_preferences()
        self.show_translation = False
        self.show_conjugations = preferences.show_conjugations

        self.deck: list[Card] = []
        self.current_index = 0
        self.phase = Phase.TYPING
        self.user_input = ""
        self.feedback: Feedback | None = None
        self._presented: Card | None = None
        self._presented_removed = False
        self._reported = False
        # Bumped on every transition; a scheduled advance only fires if unchanged.
        self._transition_id = 0
        self._regenerate()
        self.show_translation = preferences.show_translation

    @property
    def selected_verbs(self) -> list[str]:
        """Selected infinitives, in verb-table order."""
        return [verb.infinitive for verb in self.content.verbs if verb.infinitive in self._selected]

    @property
    def mastered(self) -> frozenset[str]:
        """Composite keys answered correctly via check."""
        return frozenset(self._mastered)

    @property
    def current_card(self) -> Card | None:
        """Card on display, or None when there is nothing to practice."""
        return self._presented

    @property
    def current_verb(self) -> Verb | None:
        """Verb of the card on display."""
        card = self._presented
        if card is None:
            return None
        return self.content.verb(card.verb)

    @property
    def has_no_selection(self) -> bool:
        """True when no verbs are selected."""
        return not self._selected

    @property
    def deck_complete(self) -> bool:
        """True when every card of a non-empty selection has been mastered."""
        return bool(self._selected) and not self.deck and self._presented is None

    @property
    def accuracy(self) -> int:
        """Rounded percentage of attempts that scored."""
        if self.total_attempts <= 0:
            return 0
        return round(self.total_score / self.total_attempts * 100)

    def check(self, user_input: str) -> Feedback | None:
        """Check typed input against the current card."""
        card = self._presented
        if card is None or self.phase is not Phase.TYPING:
            return None
        text = "" if user_input is None else str(user_input)
        self._transition_id += 1
        self.user_input = text
        self.total_attempts += 1
        verdict = evaluate(text, card.answer)
        if verdict is Verdict.CORRECT:
            self.total_score += 1
            self._mastered.add(card.key)
            self._drop_mastered()
        self.feedback = Feedback(
            verdict=verdict,
            user_answer=text,
            expected=card.answer,
            diff=tuple(highlight_differences(text.strip(), card.answer)),
        )
        self.phase = Phase.CHECKED
        logger.debug("Checked %s: %s", card.key, verdict.value)
        self._save_progress()
        return self.feedback

    def reveal(self) -> Card | None:
        """Show the answer; the learner must then self-report."""
        card = self._presented
        if card is None or self.phase is not Phase.TYPING:
            return None
        self._transition_id += 1
        self.phase = Phase.REVEALED
        self._reported = False
        return card

    def self_report(self, knew_it: bool) -> bool:
        """Record whether the learner knew a revealed answer, then advance after a delay."""
        if self._presented is None or self.phase is not Phase.REVEALED or self._reported:
            return False
        self._reported = True
        self.total_attempts += 1
        if knew_it:
            # Self-reported knowledge scores but does not master the card.
            self.total_score += 1
        self._save_progress()

        self._transition_id += 1
        token = self._transition_id

        def advance() -> None:
            if self._transition_id == token:
                self.next()

        self._scheduler.call_later(self.advance_delay, advance)
        return True

    def next(self) -> Card | None:
        """Move to the following card, wrapping around at the end of the deck."""
        self._transition_id += 1
        if not self.deck:
            self._presented = None
            self.current_index = 0
        elif self._presented_removed:
            # The removed card's successor already sits at current_index.
            self._presented = self.deck[self.current_index]
        else:
            self.current_index = (self.current_index + 1) % len(self.deck)
            self._presented = self.deck[self.current_index]
        self._reset_card_state()
        return self._presented

    def toggle_verb(self, infinitive: str) -> None:
        """Add or remove one verb from the selection."""
        if infinitive in self._selected:
            self._selected = [item for item in self._selected if item != infinitive]
        elif self.content.verb(infinitive) is not None:
            self._selected.append(infinitive)
        else:
            return
        self._selection_changed()

    def select_all(self) -> None:
        """Select every verb."""
        self._selected = [verb.infinitive for verb in self.content.verbs]
        self._selection_changed()

    def deselect_all(self) -> None:
        """Clear the selection."""
        self._selected = []
        self._selection_changed()

    def reset_progress(self) -> None:
        """Forget mastered pairs and zero the score."""
        self._mastered.clear()
        self.total_score = 0
        self.total_attempts = 0
        self.settings.reset_progress()
        self._regenerate()
        logger.info("Progress reset")

    def toggle_translation(self) -> bool:
        """Show or hide the translation of the current card."""
        self.show_translation = not self.show_translation
        self._save_preferences()
        return self.show_translation

    def toggle_conjugations(self) -> bool:
        """Show or hide the model conjugation table."""
        self.show_conjugations = not self.show_conjugations
        self._save_preferences()
        return self.show_conjugations

    def verb_type_label(self) -> str:
        """Describe the selection for leaderboard records."""
        selected = set(self._selected)
        if selected and selected == {verb.infinitive for verb in self.content.verbs}:
            return "all"
        classes: list[str] = []
        for verb in self.content.verbs:
            value = verb.conjugation_class.value
            if verb.infinitive in selected and value not in classes:
                classes.append(value)
        return ",".join(classes) if classes else "none"

    def _selection_changed(self) -> None:
        self.settings.save_selected_verbs(self.selected_verbs)
        self._regenerate()

    def _regenerate(self) -> None:
        """Rebuild the deck for the selection and show its first card."""
        self._transition_id += 1
        self.deck = build_deck(
            self.content.verbs,
            self._selected,
            self.content.curated,
            self.content.phrases,
            mastered=self._mastered,
            rng=self._rng,
        )
        self.current_index = 0
        self._presented = self.deck[0] if self.deck else None
        self._reset_card_state()

    def _drop_mastered(self) -> None:
        """Remove mastered cards, keeping current_index on the next unseen card."""
        before = self.deck[: self.current_index]
        removed_before = sum(1 for card in before if card.key in self._mastered)
        self.deck = [card for card in self.deck if card.key not in self._mastered]
        self.current_index = max(0, self.current_index - removed_before)
        if self.current_index >= len(self.deck):
            self.current_index = 0
        self._presented_removed = True

    def _reset_card_state(self) -> None:
        self.phase = Phase.TYPING
        self.user_input = ""
        self.feedback = None
        if self.show_translation:
            self.show_translation = False
            self._save_preferences()
        self._presented_removed = False
        self._reported = False

    def _save_progress(self) -> None:
        self.settings.save_progress(
            SavedProgress(
                total_score=self.total_score,
                total_attempts=self.total_attempts,
                answered_correctly=sorted(self._mastered),
            )
        )

    def _save_preferences(self) -> None:
        self.settings.save_ui_preferences(
            UiPreferences(show_translation=self.show_translation, show_conjugations=self.show_conjugations)
        )
