"""Regular-pattern conjugation helpers."""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping

from .models import PERSONS, ConjugationClass, ConjugationPattern, Person, Verb

UNKNOWN_MEANING = "(Add meaning)"


def verb_stem(infinitive: str) -> str:
    """Strip the three-letter infinitive ending."""
    return infinitive[:-3]


def detect_class(infinitive: str, verbs: Iterable[Verb] = ()) -> ConjugationClass:
    """Guess the conjugation class of an infinitive from its ending."""
    if infinitive.endswith("are"):
        return ConjugationClass.ARE
    if infinitive.endswith("ere"):
        return ConjugationClass.ERE
    # -isc membership cannot be read off the ending, only from known verbs.
    for verb in verbs:
        if verb.infinitive == infinitive and verb.conjugation_class is ConjugationClass.IRE_ISC:
            return ConjugationClass.IRE_ISC
    return ConjugationClass.IRE


def synthesize_conjugations(
    infinitive: str,
    conjugation_class: ConjugationClass,
    patterns: Mapping[ConjugationClass, ConjugationPattern],
) -> dict[Person, str]:
    """Build stem + suffix forms for all six persons."""
    stem = verb_stem(infinitive)
    suffixes = patterns[conjugation_class].suffixes
    return {person: stem + suffixes[person] for person in PERSONS}


def conjugate_verb(
    infinitive: str,
    verbs: Iterable[Verb],
    patterns: Mapping[ConjugationClass, ConjugationPattern],
) -> Verb:
    """Return the tabulated verb, or a regular conjugation for an unknown one."""
    known = list(verbs)
    cleaned = infinitive.strip().lower()
    for verb in known:
        if verb.infinitive == cleaned:
            return verb
    conjugation_class = detect_class(cleaned, known)
    return Verb(
        infinitive=cleaned,
        meaning=UNKNOWN_MEANING,
        conjugation_class=conjugation_class,
        conjugations=synthesize_conjugations(cleaned, conjugation_class, patterns),
    )


def hint_verb(verb: Verb, verbs: Iterable[Verb], rng: random.Random | None = None) -> Verb | None:
    """Pick another verb of the same class to show as a model table."""
    candidates = [
        item
        for item in verbs
        if item.conjugation_class is verb.conjugation_class and item.infinitive != verb.infinitive
    ]
    if not candidates:
        return None
    source = rng if rng is not None else random.Random()
    return source.choice(candidates)
