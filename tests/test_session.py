import random

from verbtrainer.evaluator import Mark, Verdict
from verbtrainer.models import Content, Person
from verbtrainer.progress import MemoryKeyValueStore, StorageKeys, UserSettings
from verbtrainer.session import ManualScheduler, Phase, PracticeSession, SleepScheduler


def _session(
    content: Content,
    initial: dict[str, object] | None = None,
    store: MemoryKeyValueStore | None = None,
) -> tuple[PracticeSession, ManualScheduler, MemoryKeyValueStore]:
    backing = store if store is not None else MemoryKeyValueStore(initial)
    scheduler = ManualScheduler()
    session = PracticeSession(
        content,
        UserSettings(backing),
        scheduler=scheduler,
        rng=random.Random(5),
        advance_delay=0.0,
    )
    return session, scheduler, backing


def test_fresh_session_selects_every_verb(content: Content) -> None:
    session, _, _ = _session(content)
    assert session.selected_verbs == [verb.infinitive for verb in content.verbs]
    assert len(session.deck) == len(content.verbs) * 6
    assert session.current_card == session.deck[0]
    assert session.total_score == 0
    assert session.accuracy == 0
    assert session.verb_type_label() == "all"


def test_correct_answer_scores_masters_and_advances(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: ["mangiare"]})
    assert session.current_card is not None
    assert session.current_card.sentence == "Noi ______ la pizza."

    feedback = session.check("  Mangiamo ")
    assert feedback is not None
    assert feedback.verdict is Verdict.CORRECT
    assert session.phase is Phase.CHECKED
    assert session.total_score == 1
    assert session.total_attempts == 1
    assert session.mastered == frozenset({"mangiare:noi"})
    assert len(session.deck) == 5
    assert store.get(StorageKeys.ANSWERED_CORRECTLY) == ["mangiare:noi"]
    assert store.get(StorageKeys.TOTAL_SCORE) == 1

    card = session.next()
    assert card is not None
    assert card.person is Person.IO
    assert session.phase is Phase.TYPING
    assert session.feedback is None


def test_almost_answer_counts_attempt_only(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["mangiare"]})
    session.next()
    card = session.current_card
    assert card is not None and card.person is Person.IO

    feedback = session.check("mangi")
    assert feedback is not None
    assert feedback.verdict is Verdict.ALMOST
    assert feedback.expected == "mangio"
    assert session.total_score == 0
    assert session.total_attempts == 1
    assert session.mastered == frozenset()
    assert len(session.deck) == 6


def test_incorrect_answer_reports_diff(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["mangiare"]})
    feedback = session.check("  xyz ")
    assert feedback is not None
    assert feedback.verdict is Verdict.INCORRECT
    assert feedback.user_answer == "  xyz "
    assert [segment.mark for segment in feedback.diff][:3] == [Mark.WRONG] * 3
    assert feedback.diff[-1].mark is Mark.MISSING


def test_check_only_once_per_card(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    assert session.check("wrong") is not None
    assert session.check("bevo") is None
    assert session.total_attempts == 1


def test_reveal_then_self_report_advances_after_delay(content: Content) -> None:
    session, scheduler, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    first = session.current_card
    assert session.reveal() == first
    assert session.phase is Phase.REVEALED
    assert session.check("bevo") is None

    assert session.self_report(True) is True
    assert session.self_report(True) is False
    assert session.total_score == 1
    assert session.total_attempts == 1
    assert session.mastered == frozenset()
    assert session.current_card == first

    assert scheduler.run_pending() == 1
    assert session.current_card != first
    assert session.phase is Phase.TYPING


def test_self_report_fail_counts_attempt(content: Content) -> None:
    session, scheduler, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    session.reveal()
    session.self_report(False)
    assert session.total_score == 0
    assert session.total_attempts == 1
    scheduler.run_pending()


def test_manual_next_supersedes_pending_advance(content: Content) -> None:
    session, scheduler, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    session.reveal()
    session.self_report(True)
    second = session.next()
    scheduler.run_pending()
    assert session.current_card == second
    assert session.current_index == 1


def test_sleep_scheduler_advances_immediately(content: Content) -> None:
    delays: list[float] = []
    session = PracticeSession(
        content,
        UserSettings(MemoryKeyValueStore({StorageKeys.SELECTED_VERBS: ["bere"]})),
        scheduler=SleepScheduler(sleep=delays.append),
        rng=random.Random(5),
        advance_delay=1.5,
    )
    first = session.current_card
    session.reveal()
    session.self_report(False)
    assert delays == [1.5]
    assert session.current_card != first


def test_next_wraps_around(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    first = session.current_card
    for _ in range(6):
        session.next()
    assert session.current_card == first


def test_single_card_deck_repeats_until_mastered(content: Content) -> None:
    mastered = ["bere:io", "bere:tu", "bere:lui", "bere:noi", "bere:loro"]
    session, _, _ = _session(
        content,
        {StorageKeys.SELECTED_VERBS: ["bere"], StorageKeys.ANSWERED_CORRECTLY: mastered},
    )
    assert len(session.deck) == 1
    card = session.current_card
    assert card is not None and card.person is Person.VOI

    session.check("nope")
    assert session.next() == card
    assert session.current_index == 0
    assert session.user_input == ""
    assert session.feedback is None
    assert session.phase is Phase.TYPING

    session.check("bevete")
    assert session.deck == []
    assert session.next() is None
    assert session.deck_complete is True
    assert session.has_no_selection is False


def test_empty_selection_has_no_cards(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: []})
    assert session.deck == []
    assert session.current_card is None
    assert session.has_no_selection is True
    assert session.deck_complete is False
    assert session.check("parlo") is None
    assert session.reveal() is None
    assert session.next() is None
    assert session.verb_type_label() == "none"
    assert store.get(StorageKeys.SELECTED_VERBS) == []


def test_toggle_verb_rebuilds_and_persists(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: ["parlare"]})
    session.toggle_verb("capire")
    assert session.selected_verbs == ["parlare", "capire"]
    assert len(session.deck) == 12
    assert store.get(StorageKeys.SELECTED_VERBS) == ["parlare", "capire"]
    assert session.verb_type_label() == "are,ire-isc"

    session.toggle_verb("parlare")
    assert session.selected_verbs == ["capire"]
    session.toggle_verb("nonexistent")
    assert session.selected_verbs == ["capire"]


def test_select_all_and_deselect_all(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: ["parlare"]})
    session.select_all()
    assert len(session.selected_verbs) == len(content.verbs)
    session.deselect_all()
    assert session.selected_verbs == []
    assert store.get(StorageKeys.SELECTED_VERBS) == []


def test_unknown_saved_verbs_are_dropped(content: Content) -> None:
    session, _, _ = _session(
        content,
        {StorageKeys.SELECTED_VERBS: ["parlare", "volare"], StorageKeys.ANSWERED_CORRECTLY: ["volare:io"]},
    )
    assert session.selected_verbs == ["parlare"]
    assert session.mastered == frozenset()


def test_progress_survives_new_session(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: ["mangiare"]})
    session.check("mangiamo")
    session.next()
    session.check("wrong")

    restored, _, _ = _session(content, store=store)
    assert restored.total_score == 1
    assert restored.total_attempts == 2
    assert restored.accuracy == 50
    assert restored.mastered == frozenset({"mangiare:noi"})
    assert len(restored.deck) == 5


def test_reset_progress_restores_full_deck(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: ["mangiare"]})
    session.check("mangiamo")
    session.reset_progress()
    assert session.total_score == 0
    assert session.total_attempts == 0
    assert session.mastered == frozenset()
    assert len(session.deck) == 6
    assert store.get(StorageKeys.ANSWERED_CORRECTLY) == []
    assert store.get(StorageKeys.SELECTED_VERBS) == ["mangiare"]


def test_translation_toggle_resets_on_next_card(content: Content) -> None:
    session, _, store = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    assert session.toggle_translation() is True
    assert store.get(StorageKeys.SHOW_TRANSLATION) is True
    session.next()
    assert session.show_translation is False
    assert store.get(StorageKeys.SHOW_TRANSLATION) is False


def test_preferences_restored_on_load(content: Content) -> None:
    session, _, _ = _session(
        content,
        {StorageKeys.SHOW_TRANSLATION: True, StorageKeys.SHOW_CONJUGATIONS: True},
    )
    assert session.show_translation is True
    assert session.show_conjugations is True
    assert session.toggle_conjugations() is False


def test_session_without_storage_still_works(content: Content) -> None:
    session = PracticeSession(content, scheduler=ManualScheduler(), rng=random.Random(1))
    card = session.current_card
    assert card is not None
    feedback = session.check(card.answer)
    assert feedback is not None and feedback.verdict is Verdict.CORRECT
    assert session.total_score == 1


def test_mastering_last_card_keeps_index_in_range(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    first = session.current_card
    for _ in range(5):
        session.next()
    assert session.current_index == 5
    last = session.current_card
    assert last is not None

    session.check(last.answer)
    assert len(session.deck) == 5
    assert 0 <= session.current_index < len(session.deck)
    assert session.phase is Phase.CHECKED
    assert session.current_card == last

    assert session.next() == first
    assert session.current_index == 0


def test_mastering_middle_card_shows_its_successor(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["bere"]})
    session.next()
    session.next()
    successor = session.deck[3]
    card = session.current_card
    assert card is not None

    session.check(card.answer)
    assert session.current_index == 2
    assert session.next() == successor


def test_mastered_pair_stays_out_until_reset(content: Content) -> None:
    session, _, _ = _session(content, {StorageKeys.SELECTED_VERBS: ["mangiare"]})
    session.check("mangiamo")

    def keys() -> set[str]:
        return {card.key for card in session.deck}

    session.toggle_verb("mangiare")
    assert session.deck == []
    session.toggle_verb("mangiare")
    assert "mangiare:noi" not in keys()
    assert len(session.deck) == 5

    session.select_all()
    assert "mangiare:noi" not in keys()
    session.deselect_all()
    session.select_all()
    assert "mangiare:noi" not in keys()
    assert "mangiare:noi" in session.mastered

    session.reset_progress()
    assert "mangiare:noi" in keys()
