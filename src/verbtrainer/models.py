"""Core domain models for Italian verb conjugation practice."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Person(str, Enum):
    """Grammatical subject that selects a conjugated form."""

    IO = "io"
    TU = "tu"
    LUI = "lui"
    NOI = "noi"
    VOI = "voi"
    LORO = "loro"


# Canonical order for every iteration that affects output.
PERSONS: tuple[Person, ...] = (Person.IO, Person.TU, Person.LUI, Person.NOI, Person.VOI, Person.LORO)

PRONOUNS: dict[Person, str] = {
    Person.IO: "I",
    Person.TU: "you",
    Person.LUI: "he",
    Person.NOI: "we",
    Person.VOI: "you all",
    Person.LORO: "they",
}


class ConjugationClass(str, Enum):
    """Regular inflection pattern, named after the infinitive ending."""

    ARE = "are"
    ERE = "ere"
    IRE = "ire"
    IRE_ISC = "ire-isc"


@dataclass(frozen=True)
class ConjugationPattern:
    """Present-tense suffixes for one conjugation class."""

    conjugation_class: ConjugationClass
    description: str
    suffixes: dict[Person, str]


@dataclass(frozen=True)
class Verb:
    """One verb with its six present-tense forms."""

    infinitive: str
    meaning: str
    conjugation_class: ConjugationClass
    conjugations: dict[Person, str]

    def form(self, person: Person) -> str:
        """Return the conjugated form for a person."""
        return self.conjugations[person]


@dataclass(frozen=True)
class Card:
    """One fill-in-the-blank exercise."""

    sentence: str
    verb: str
    person: Person
    answer: str
    translation: str | None = None

    @property
    def key(self) -> str:
        """Composite identity used to track mastered pairs."""
        return card_key(self.verb, self.person)


@dataclass(frozen=True)
class PhraseTable:
    """Context and object phrases used to build generated sentences."""

    contexts: dict[Person, dict[ConjugationClass, list[str]]]
    objects: dict[str, list[str]]
    generic_objects: list[str]


@dataclass(frozen=True)
class Content:
    """Everything loaded from the bundled dataset."""

    verbs: list[Verb]
    patterns: dict[ConjugationClass, ConjugationPattern]
    curated: list[Card]
    phrases: PhraseTable

    def verb(self, infinitive: str) -> Verb | None:
        """Return a verb by infinitive."""
        for verb in self.verbs:
            if verb.infinitive == infinitive:
                return verb
        return None


@dataclass(frozen=True)
class ScoreRecord:
    """One leaderboard row."""

    id: str
    username: str
    email: str | None
    score: int
    accuracy: int
    verb_type: str
    total_attempts: int
    created_at: str


@dataclass(frozen=True)
class NewScore:
    """A score about to be submitted to the leaderboard."""

    username: str
    score: int
    accuracy: int
    verb_type: str
    total_attempts: int
    email: str | None = None


def card_key(infinitive: str, person: Person | str) -> str:
    """Build the composite "<infinitive>:<person>" key."""
    value = person.value if isinstance(person, Person) else str(person)
    return f"{infinitive}:{value}"
