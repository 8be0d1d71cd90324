"""Answer checking: normalization, edit distance, and positional diffs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from html import escape

ALMOST_MAX_DISTANCE = 2


class Verdict(str, Enum):
    """Outcome of comparing an answer to the expected form."""

    CORRECT = "correct"
    ALMOST = "almost"
    INCORRECT = "incorrect"


class Mark(str, Enum):
    """How one character of a diff is displayed."""

    MATCH = "match"
    MISSING = "missing"
    EXTRA = "extra"
    WRONG = "wrong"


@dataclass(frozen=True)
class DiffSegment:
    """One displayed character of a diff."""

    char: str
    mark: Mark


def normalize(text: object) -> str:
    """Trim surrounding whitespace and fold case."""
    return str(text).strip().lower()


def levenshtein(a: str, b: str) -> int:
    """Return the classic insertion/deletion/substitution edit distance."""
    # matrix[i][j] is the distance between b[:i] and a[:j].
    matrix = [[0] * (len(a) + 1) for _ in range(len(b) + 1)]
    for i in range(len(b) + 1):
        matrix[i][0] = i
    for j in range(len(a) + 1):
        matrix[0][j] = j

    for i in range(1, len(b) + 1):
        for j in range(1, len(a) + 1):
            if b[i - 1] == a[j - 1]:
                matrix[i][j] = matrix[i - 1][j - 1]
            else:
                matrix[i][j] = min(
                    matrix[i - 1][j - 1] + 1,
                    matrix[i][j - 1] + 1,
                    matrix[i - 1][j] + 1,
                )
    return matrix[len(b)][len(a)]


def is_almost_correct(user_answer: object, expected: object) -> bool:
    """Return whether the answer is one or two edits away from the expected form."""
    distance = levenshtein(normalize(user_answer), normalize(expected))
    return 0 < distance <= ALMOST_MAX_DISTANCE


def evaluate(user_answer: object, expected: object) -> Verdict:
    """Classify an answer as correct, almost correct, or incorrect."""
    user = normalize(user_answer)
    target = normalize(expected)
    if user == target:
        return Verdict.CORRECT
    if levenshtein(user, target) <= ALMOST_MAX_DISTANCE:
        return Verdict.ALMOST
    return Verdict.INCORRECT


def highlight_differences(user_answer: object, expected: object) -> list[DiffSegment]:
    """Compare answers position by position.

    This is not an alignment: one inserted or dropped character early in the
    answer shifts every later position and flags all of them.
    """
    user = str(user_answer)
    target = str(expected)
    segments: list[DiffSegment] = []
    for index in range(max(len(user), len(target))):
        if index >= len(user):
            segments.append(DiffSegment(target[index], Mark.MISSING))
        elif index >= len(target):
            segments.append(DiffSegment(user[index], Mark.EXTRA))
        elif user[index] != target[index]:
            segments.append(DiffSegment(target[index], Mark.WRONG))
        else:
            segments.append(DiffSegment(target[index], Mark.MATCH))
    return segments


def render_html(segments: list[DiffSegment]) -> str:
    """Render a diff with highlighted spans."""
    parts: list[str] = []
    for segment in segments:
        char = escape(segment.char)
        if segment.mark is Mark.MATCH:
            parts.append(char)
        elif segment.mark is Mark.EXTRA:
            parts.append(f'<span class="text-red-500 font-bold line-through">{char}</span>')
        else:
            parts.append(f'<span class="text-red-500 font-bold">{char}</span>')
    return "".join(parts)


def render_terminal(segments: list[DiffSegment]) -> str:
    """Render a diff for plain terminals: [x] wrong or missing, ~x~ extra."""
    parts: list[str] = []
    for segment in segments:
        if segment.mark is Mark.MATCH:
            parts.append(segment.char)
        elif segment.mark is Mark.EXTRA:
            parts.append(f"~{segment.char}~")
        else:
            parts.append(f"[{segment.char}]")
    return "".join(parts)
