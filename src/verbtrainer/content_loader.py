"""Load the verb table, curated sentences, and phrases from bundled JSON resources."""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any

from .conjugation import synthesize_conjugations
from .models import (
    PERSONS,
    Card,
    ConjugationClass,
    ConjugationPattern,
    Content,
    Person,
    PhraseTable,
    Verb,
)

CONTENT_PACKAGE = "verbtrainer.content"
VERBS_FILE = "verbs.json"
SENTENCES_FILE = "sentences.json"
PHRASES_FILE = "phrases.json"


def _person(raw: object) -> Person:
    """Parse one person name."""
    try:
        return Person(str(raw).strip())
    except ValueError:
        raise ValueError(f"Unknown person: {raw!r}") from None


def _conjugation_class(raw: object) -> ConjugationClass:
    """Parse one conjugation class name."""
    try:
        return ConjugationClass(str(raw).strip())
    except ValueError:
        raise ValueError(f"Unknown conjugation class: {raw!r}") from None


def _person_map(owner: str, raw: dict[str, Any]) -> dict[Person, str]:
    """Parse a person -> string mapping and require all six persons."""
    values = {_person(key): str(value).strip() for key, value in raw.items()}
    missing = [person.value for person in PERSONS if not values.get(person)]
    if missing:
        raise ValueError(f"'{owner}' is missing forms for: {', '.join(missing)}")
    return {person: values[person] for person in PERSONS}


def _pattern_from_dict(raw: dict[str, Any]) -> ConjugationPattern:
    """Build a conjugation pattern from raw JSON content."""
    conjugation_class = _conjugation_class(raw["class"])
    return ConjugationPattern(
        conjugation_class=conjugation_class,
        description=str(raw.get("description", "")),
        suffixes=_person_map(f"pattern {conjugation_class.value}", raw.get("suffixes", {})),
    )


def _verb_from_dict(raw: dict[str, Any], patterns: dict[ConjugationClass, ConjugationPattern]) -> Verb:
    """Build a verb, synthesizing regular forms when none are listed."""
    infinitive = str(raw["infinitive"]).strip().lower()
    if not infinitive:
        raise ValueError("Verb has an empty infinitive.")
    conjugation_class = _conjugation_class(raw["class"])
    raw_conjugations = raw.get("conjugations")
    if raw_conjugations:
        conjugations = _person_map(infinitive, raw_conjugations)
    else:
        conjugations = synthesize_conjugations(infinitive, conjugation_class, patterns)
    return Verb(
        infinitive=infinitive,
        meaning=str(raw.get("meaning", "")),
        conjugation_class=conjugation_class,
        conjugations=conjugations,
    )


def _card_from_dict(raw: dict[str, Any]) -> Card:
    """Build a curated card from raw JSON content."""
    translation = raw.get("translation")
    return Card(
        sentence=str(raw["sentence"]),
        verb=str(raw["verb"]).strip().lower(),
        person=_person(raw["person"]),
        answer=str(raw["answer"]).strip(),
        translation=str(translation) if translation else None,
    )


def _phrases_from_dict(raw: dict[str, Any]) -> PhraseTable:
    """Build the phrase lookup tables."""
    contexts: dict[Person, dict[ConjugationClass, list[str]]] = {}
    for person_name, by_class in raw.get("contexts", {}).items():
        person = _person(person_name)
        contexts[person] = {
            _conjugation_class(class_name): [str(item) for item in phrases] for class_name, phrases in by_class.items()
        }
    objects = {
        str(verb).strip().lower(): [str(item) for item in phrases] for verb, phrases in raw.get("objects", {}).items()
    }
    generic = [str(item) for item in raw.get("generic_objects", [""])] or [""]
    return PhraseTable(contexts=contexts, objects=objects, generic_objects=generic)


def _build_content(verbs_raw: dict[str, Any], sentences_raw: dict[str, Any], phrases_raw: dict[str, Any]) -> Content:
    """Parse and validate one full dataset."""
    patterns: dict[ConjugationClass, ConjugationPattern] = {}
    for item in verbs_raw.get("patterns", []):
        pattern = _pattern_from_dict(item)
        if pattern.conjugation_class in patterns:
            raise ValueError(f"Duplicate pattern for class: {pattern.conjugation_class.value}")
        patterns[pattern.conjugation_class] = pattern
    missing_classes = [item.value for item in ConjugationClass if item not in patterns]
    if missing_classes:
        raise ValueError(f"Missing conjugation patterns for: {', '.join(missing_classes)}")

    verbs = [_verb_from_dict(item, patterns) for item in verbs_raw.get("verbs", [])]
    _validate_unique_infinitives(verbs)

    curated = [_card_from_dict(item) for item in sentences_raw.get("sentences", [])]
    _validate_curated_cards(curated, verbs)

    return Content(verbs=verbs, patterns=patterns, curated=curated, phrases=_phrases_from_dict(phrases_raw))


def load_content() -> Content:
    """Load the bundled dataset."""
    root = resources.files(CONTENT_PACKAGE)
    return _build_content(
        json.loads(root.joinpath(VERBS_FILE).read_text(encoding="utf-8-sig")),
        json.loads(root.joinpath(SENTENCES_FILE).read_text(encoding="utf-8-sig")),
        json.loads(root.joinpath(PHRASES_FILE).read_text(encoding="utf-8-sig")),
    )


def load_content_from_dir(path: Path) -> Content:
    """Load a dataset from a directory for tests/tools."""

    def read(name: str) -> dict[str, Any]:
        file_path = path / name
        if not file_path.exists():
            return {}
        return json.loads(file_path.read_text(encoding="utf-8-sig"))

    return _build_content(read(VERBS_FILE), read(SENTENCES_FILE), read(PHRASES_FILE))


def _validate_unique_infinitives(verbs: list[Verb]) -> None:
    """Validate that each infinitive appears once."""
    seen: set[str] = set()
    for verb in verbs:
        if verb.infinitive in seen:
            raise ValueError(f"Duplicate verb: {verb.infinitive}")
        seen.add(verb.infinitive)


def _validate_curated_cards(cards: list[Card], verbs: list[Verb]) -> None:
    """Validate curated cards against the verb table."""
    by_infinitive = {verb.infinitive: verb for verb in verbs}
    covered: set[str] = set()
    for card in cards:
        verb = by_infinitive.get(card.verb)
        if verb is None:
            raise ValueError(f"Sentence '{card.sentence}' uses unknown verb '{card.verb}'.")
        expected = verb.form(card.person)
        if card.answer != expected:
            raise ValueError(
                f"Sentence '{card.sentence}' expects '{card.answer}' "
                f"but {card.verb} ({card.person.value}) is '{expected}'."
            )
        if card.key in covered:
            raise ValueError(f"Duplicate curated sentence for {card.key}")
        covered.add(card.key)
