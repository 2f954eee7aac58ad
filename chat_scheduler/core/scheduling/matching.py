"""Fuzzy patient name matching."""

from typing import Optional, Sequence

from chat_scheduler.core.text import fold
from .types import PatientRecord


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current

    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``(maxLen - distance) / maxLen`` over folded names; 1.0 for two empties."""
    a, b = fold(a), fold(b)
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def best_match(
    name: str,
    patients: Sequence[PatientRecord],
    threshold: float,
) -> Optional[PatientRecord]:
    """
    Highest-scoring patient strictly above the threshold.

    Ties go to the first patient in the given order.
    """
    best: Optional[PatientRecord] = None
    best_score = threshold

    for patient in patients:
        score = similarity(name, patient.full_name)
        if score > best_score:
            best, best_score = patient, score

    return best
