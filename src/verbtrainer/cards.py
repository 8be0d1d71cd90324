"""Build fill-in-the-blank decks from the verb table."""

from __future__ import annotations

import random
from collections.abc import Collection, Iterable

from .models import PERSONS, PRONOUNS, Card, Person, PhraseTable, Verb, card_key

BLANK = "______"


def build_deck(
    verbs: Iterable[Verb],
    selected: Collection[str],
    curated: Iterable[Card],
    phrases: PhraseTable,
    *,
    mastered: Collection[str] = (),
    rng: random.Random | None = None,
) -> list[Card]:
    """Return one card per (selected verb, person) pair, minus mastered pairs.

    Curated cards come first, in their listed order. Every pair they do not
    cover gets a generated card, in verb-table order then person order. An
    empty selection gives an empty deck.
    """
    source = rng if rng is not None else random.Random()
    selected_set = set(selected)
    deck: list[Card] = []
    covered: set[str] = set()

    for card in curated:
        if card.verb not in selected_set or card.key in covered:
            continue
        covered.add(card.key)
        deck.append(card)

    for verb in verbs:
        if verb.infinitive not in selected_set:
            continue
        for person in PERSONS:
            key = card_key(verb.infinitive, person)
            if key in covered:
                continue
            covered.add(key)
            deck.append(_generated_card(verb, person, phrases, source))

    if not mastered:
        return deck
    mastered_set = set(mastered)
    return [card for card in deck if card.key not in mastered_set]


def _generated_card(verb: Verb, person: Person, phrases: PhraseTable, rng: random.Random) -> Card:
    """Synthesize one card with a randomly chosen context and object."""
    objects = phrases.objects.get(verb.infinitive) or phrases.generic_objects or [""]
    contexts = phrases.contexts.get(person, {}).get(verb.conjugation_class) or [""]
    context = rng.choice(contexts)
    obj = rng.choice(objects)
    return Card(
        sentence=compose_sentence(person, context, obj),
        verb=verb.infinitive,
        person=person,
        answer=verb.form(person),
        translation=compose_translation(person, verb.meaning, bool(context or obj)),
    )


def compose_sentence(person: Person, context: str, obj: str) -> str:
    """Join subject, blank, and optional phrases into a sentence."""
    words = [person.value.capitalize(), BLANK]
    words.extend(part for part in (context, obj) if part)
    return " ".join(words) + "."


def compose_translation(person: Person, meaning: str, has_phrases: bool) -> str:
    """Gloss a generated sentence as pronoun + bare English verb."""
    gloss = f"{PRONOUNS[person]} {meaning.removeprefix('to ')}"
    if has_phrases:
        gloss += "..."
    return gloss
