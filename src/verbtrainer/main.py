"""CLI entrypoint for the Italian verb flashcard trainer."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from datetime import datetime

from .config import AppConfig, load_config
from .errors import StoreUnavailable, ValidationError
from .evaluator import Verdict, render_terminal
from .models import PERSONS, ConjugationClass, ScoreRecord, Verb, card_key
from .service import TrainerService
from .session import PracticeSession

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
BACK_COMMANDS = {":back", ":b", "back"}
MENU_QUIT_COMMANDS = {"q"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MENU_BACK_COMMANDS = {"b"}
REVEAL_COMMANDS = {":show", ":s"}
TRANSLATION_COMMANDS = {":t"}
CONJUGATION_COMMANDS = {":c"}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service(config: AppConfig | None = None) -> TrainerService:
    """Create app service from runtime configuration."""
    return TrainerService.from_config(config if config is not None else load_config())


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="verbtrainer", description="Italian verb conjugation flashcards")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "scores", "conjugate"])
    parser.add_argument("infinitive", nargs="?", help="verb to conjugate (with 'conjugate')")
    parser.add_argument("--log-level", default=None, help="logging level (default: VERBTRAINER_LOG_LEVEL or WARNING)")
    args = parser.parse_args(argv)

    config = load_config()
    level = args.log_level or config.log_level
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.WARNING))

    if args.command == "scores":
        return scores_command(config=config)
    if args.command == "conjugate":
        if not args.infinitive:
            parser.error("conjugate requires an infinitive")
        return conjugate_command(args.infinitive, config=config)
    return play_shell(config=config)


def scores_command(print_fn: PrintFn = print, *, config: AppConfig | None = None) -> int:
    """Print the leaderboard and exit."""
    service = _service(config)
    try:
        return 0 if _leaderboard_flow(service, print_fn) else 1
    finally:
        service.close()


def conjugate_command(infinitive: str, print_fn: PrintFn = print, *, config: AppConfig | None = None) -> int:
    """Print the present tense of one verb and exit."""
    service = _service(config)
    try:
        _print_conjugation_table(service.conjugate(infinitive), print_fn)
        return 0
    finally:
        service.close()


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print, *, config: AppConfig | None = None) -> int:
    """Run persistent menu-driven shell."""
    service = _service(config)
    try:
        selected = _select_profile(service, input_fn, print_fn, allow_cancel=False)
        if selected is None:
            return 0
        profile_id, profile_name = selected
        session = service.open_session(profile_id)
        try:
            while True:
                print_fn("\n=== Italian Verb Flashcards ===")
                print_fn(f"Profile: {profile_name}")
                print_fn(f"Score: {session.total_score} / {session.total_attempts} ({session.accuracy}% accuracy)")
                print_fn("1) Practice")
                print_fn("2) Select verbs")
                print_fn("3) Progress")
                print_fn("4) Leaderboard")
                print_fn("5) Submit score")
                print_fn("6) Reset progress")
                print_fn("7) Preferences")
                print_fn("b) Back")
                print_fn("q) Quit")
                choice = input_fn("Choose: ").strip().lower()

                if choice == "1":
                    _practice_flow(service, session, input_fn, print_fn)
                elif choice == "2":
                    _select_verbs_flow(session, input_fn, print_fn)
                elif choice == "3":
                    _progress_flow(session, print_fn)
                elif choice == "4":
                    _leaderboard_flow(service, print_fn)
                elif choice == "5":
                    _submit_score_flow(service, session, input_fn, print_fn)
                elif choice == "6":
                    _reset_progress_flow(session, input_fn, print_fn)
                elif choice == "7":
                    _preferences_flow(session, input_fn, print_fn)
                elif choice in MENU_BACK_COMMANDS:
                    switched = _select_profile(service, input_fn, print_fn, allow_cancel=True)
                    if switched is None:
                        return 0
                    profile_id, profile_name = switched
                    session = service.open_session(profile_id)
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
        except QuitApp:
            return 0
    finally:
        service.close()


def _select_profile(
    service: TrainerService, input_fn: InputFn, print_fn: PrintFn, *, allow_cancel: bool
) -> tuple[int, str] | None:
    """Select existing profile or create new one."""
    while True:
        profiles = service.list_profiles()
        print_fn("\n=== Profiles ===")
        if profiles:
            for idx, profile in enumerate(profiles, start=1):
                print_fn(f"{idx}) {profile.name}")
        else:
            print_fn("No profiles yet.")
        print_fn("n) New profile")
        print_fn("d) Delete profile")
        print_fn("q) Quit")

        choice = input_fn("Select profile: ").strip().lower()
        if choice in MENU_QUIT_COMMANDS:
            return None
        if choice == "n":
            name = input_fn("New profile name: ").strip()
            if not name:
                print_fn("Profile name is required.")
                continue
            try:
                created = service.create_profile(name)
            except Exception:
                print_fn("Could not create profile (name may already exist).")
                continue
            return (created.id, created.name)
        if choice == "d":
            _delete_profile_flow(service, input_fn, print_fn)
            continue

        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(profiles):
                selected = profiles[index]
                return (selected.id, selected.name)

        print_fn("Invalid profile selection.")


def _delete_profile_flow(service: TrainerService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Delete a profile with explicit confirmation safeguard."""
    profiles = service.list_profiles()
    if not profiles:
        print_fn("No profiles available to delete.")
        return

    print_fn("\nDelete profile")
    for idx, profile in enumerate(profiles, start=1):
        print_fn(f"{idx}) {profile.name}")
    print_fn("b) Back")
    choice = input_fn("Choose profile to delete: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if not choice.isdigit():
        print_fn("Invalid choice.")
        return

    index = int(choice) - 1
    if not (0 <= index < len(profiles)):
        print_fn("Invalid choice.")
        return

    target = profiles[index]
    print_fn(f"WARNING: This permanently deletes profile '{target.name}' and all saved progress.")
    confirm = input_fn("Type YES to confirm deletion: ").strip()
    if confirm != "YES":
        print_fn("Deletion cancelled.")
        return
    deleted = service.delete_profile(target.id)
    if deleted:
        print_fn(f"Deleted profile '{target.name}'.")
    else:
        print_fn("Profile was not found.")


def _practice_flow(service: TrainerService, session: PracticeSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Run the flashcard loop until the learner leaves or the deck runs out."""
    print_fn("\n=== Practice ===")
    print_fn("Commands: :show reveal, :t translation, :c conjugation hint, :b leave.")
    while True:
        card = session.current_card
        if card is None:
            if session.has_no_selection:
                print_fn("No cards available for the selected verbs. Select verbs first.")
            else:
                print_fn("Deck complete! Every card has been answered correctly. Reset progress to practice again.")
            return

        print_fn(f"\nCard {session.current_index + 1} of {len(session.deck)}")
        print_fn(card.sentence)
        verb = session.current_verb
        if verb is not None:
            print_fn(f"Verb: {verb.infinitive} ({verb.meaning})")
            if session.show_conjugations:
                hint = service.hint_for(verb)
                if hint is not None:
                    print_fn(f"Model verb ({hint.conjugation_class.value}):")
                    _print_conjugation_table(hint, print_fn)
        if session.show_translation and card.translation:
            print_fn(f"Translation: {card.translation}")

        user_input = input_fn("Your answer: ")
        lowered = user_input.strip().lower()
        if lowered in BACK_COMMANDS or lowered in FLOW_EXIT_COMMANDS:
            print_fn(f"Leaving practice. Score: {session.total_score} / {session.total_attempts}")
            return
        if lowered in TRANSLATION_COMMANDS:
            session.toggle_translation()
            continue
        if lowered in CONJUGATION_COMMANDS:
            session.toggle_conjugations()
            continue
        if lowered in REVEAL_COMMANDS:
            _reveal_card(session, input_fn, print_fn)
            continue

        feedback = session.check(user_input)
        if feedback is None:
            continue
        if feedback.verdict is Verdict.CORRECT:
            print_fn("Correct! Well done.")
        elif feedback.verdict is Verdict.ALMOST:
            print_fn("Almost correct!")
            print_fn(f"The correct answer is: {feedback.expected}")
            print_fn(f"You typed: {feedback.user_answer.strip()}")
        else:
            print_fn("Incorrect!")
            print_fn(f"The correct answer is: {feedback.expected}")
            print_fn(f"Difference: {render_terminal(list(feedback.diff))}")

        after = input_fn("Press Enter for the next card (:b to leave): ").strip().lower()
        session.next()
        if after in BACK_COMMANDS or after in FLOW_EXIT_COMMANDS:
            return


def _reveal_card(session: PracticeSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Show the answer and ask the learner to grade themselves."""
    card = session.reveal()
    if card is None:
        return
    print_fn(f"The correct answer is: {card.answer}")
    while True:
        answer = input_fn("Did you know it? (p)ass / (f)ail: ").strip().lower()
        if answer in {"p", "pass", "y", "yes"}:
            session.self_report(True)
            return
        if answer in {"f", "fail", "n", "no"}:
            session.self_report(False)
            return
        print_fn("Please answer p or f.")


def _select_verbs_flow(session: PracticeSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Toggle verbs in and out of the practice selection."""
    verbs = session.content.verbs
    while True:
        selected = set(session.selected_verbs)
        print_fn("\n=== Select Verbs ===")
        index = 1
        for conjugation_class in ConjugationClass:
            group = [verb for verb in verbs if verb.conjugation_class is conjugation_class]
            if not group:
                continue
            print_fn(f"-{conjugation_class.value} verbs")
            for verb in group:
                mark = "x" if verb.infinitive in selected else " "
                print_fn(f"{index:>2}) [{mark}] {verb.infinitive} ({verb.meaning})")
                index += 1
        print_fn(f"Selected {len(selected)} of {len(verbs)} verbs")
        print_fn("a) Select all")
        print_fn("n) Deselect all")
        print_fn("b) Back")
        choice = input_fn("Toggle verb: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice == "a":
            session.select_all()
            continue
        if choice == "n":
            session.deselect_all()
            continue
        ordered = [verb for group in ConjugationClass for verb in verbs if verb.conjugation_class is group]
        if choice.isdigit() and 0 <= int(choice) - 1 < len(ordered):
            session.toggle_verb(ordered[int(choice) - 1].infinitive)
            continue
        print_fn("Invalid choice.")


def _progress_flow(session: PracticeSession, print_fn: PrintFn) -> None:
    """Print score and per-verb mastery."""
    print_fn("\n=== Your Progress ===")
    print_fn(f"Score: {session.total_score} / {session.total_attempts} ({session.accuracy}% accuracy)")
    print_fn(f"Cards remaining: {len(session.deck)}")
    selected = session.selected_verbs
    if not selected:
        print_fn("No verbs selected.")
        return
    width = max(len("Verb"), max(len(item) for item in selected))
    header = f"{'Verb':<{width}} Mastered"
    print_fn(header)
    print_fn("-" * len(header))
    mastered = session.mastered
    for infinitive in selected:
        count = sum(1 for person in PERSONS if card_key(infinitive, person) in mastered)
        print_fn(f"{infinitive:<{width}} {count}/{len(PERSONS)}")


def _leaderboard_flow(service: TrainerService, print_fn: PrintFn) -> bool:
    """Print the top scores; returns False if they could not be loaded."""
    print_fn("\n=== Leaderboard ===")
    try:
        scores = service.top_scores()
    except StoreUnavailable:
        print_fn("Could not load scores. Please try again later.")
        return False
    if not scores:
        print_fn("No scores yet.")
        return True
    _print_scores_table(scores, print_fn)
    return True


def _print_scores_table(scores: list[ScoreRecord], print_fn: PrintFn) -> None:
    player_width = max(len("Player"), max(len(item.username) for item in scores))
    type_width = max(len("Verb Type"), max(len(item.verb_type) for item in scores))
    header = (
        f"{'#':>2} {'Player':<{player_width}} {'Score':>5} {'Acc':>4} "
        f"{'Verb Type':<{type_width}} {'Attempts':>8} Date"
    )
    print_fn(header)
    print_fn("-" * len(header))
    for rank, item in enumerate(scores, start=1):
        accuracy = f"{item.accuracy}%"
        print_fn(
            f"{rank:>2} "
            f"{item.username:<{player_width}} "
            f"{item.score:>5} "
            f"{accuracy:>4} "
            f"{item.verb_type:<{type_width}} "
            f"{item.total_attempts:>8} "
            f"{_format_local_date(item.created_at)}"
        )


def _submit_score_flow(
    service: TrainerService, session: PracticeSession, input_fn: InputFn, print_fn: PrintFn
) -> None:
    """Submit the current score to the leaderboard."""
    print_fn("\n=== Submit Score ===")
    print_fn(f"Score: {session.total_score}")
    print_fn(f"Accuracy: {session.accuracy}%")
    username = input_fn("Name: ").strip()
    if not username:
        print_fn("Name is required.")
        return
    email = input_fn("Email (optional, to hear when your score is beaten): ").strip()
    try:
        result = service.submit_score(session, username, email or None)
    except ValidationError as exc:
        print_fn(f"Invalid score: {exc}")
        return
    except StoreUnavailable:
        print_fn("Failed to submit score. Please try again later.")
        return
    print_fn(f"Submitted {result.score.score} points for {result.score.username}.")
    if result.displaced is not None:
        print_fn(f"You overtook {result.displaced.username} ({result.displaced.score}).")


def _reset_progress_flow(session: PracticeSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Reset score and mastered cards after confirmation."""
    confirm = input_fn("Reset score and mastered cards? Type YES to confirm: ").strip()
    if confirm != "YES":
        print_fn("Reset cancelled.")
        return
    session.reset_progress()
    print_fn("Progress reset.")


def _preferences_flow(session: PracticeSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Toggle display preferences."""
    while True:
        print_fn("\n=== Preferences ===")
        print_fn(f"1) Show conjugation hint: {'on' if session.show_conjugations else 'off'}")
        print_fn(f"2) Show translation: {'on' if session.show_translation else 'off'}")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "1":
            session.toggle_conjugations()
        elif choice == "2":
            session.toggle_translation()
        else:
            print_fn("Invalid choice.")


def _print_conjugation_table(verb: Verb, print_fn: PrintFn) -> None:
    """Print the six present-tense forms of a verb."""
    print_fn(f"{verb.infinitive}: {verb.meaning}")
    for person in PERSONS:
        print_fn(f"  {person.value:<5} {verb.form(person)}")


def _format_local_date(created_at: str) -> str:
    """Convert ISO timestamp to a local date."""
    try:
        dt = datetime.fromisoformat(created_at)
    except ValueError:
        return created_at
    return dt.astimezone().strftime("%Y-%m-%d")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
