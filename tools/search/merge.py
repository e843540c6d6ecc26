"""Ordering helpers for candidate lists."""

from collections.abc import Iterable, Sequence
from typing import TypeVar

from models.illustration import Candidate

T = TypeVar("T")


def interleave(first: Sequence[T], second: Sequence[T]) -> list[T]:
    """
    Alternate two ranked lists: first[0], second[0], first[1], second[1], ...

    When one list runs out the rest of the other follows in order, so the result always
    has ``len(first) + len(second)`` items.
    """
    merged: list[T] = []
    for i in range(max(len(first), len(second))):
        if i < len(first):
            merged.append(first[i])
        if i < len(second):
            merged.append(second[i])
    return merged


def dedupe_by_url(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Drop later candidates whose ``url`` was already seen; order is otherwise kept."""
    seen: set[str] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        if candidate.url in seen:
            continue
        seen.add(candidate.url)
        unique.append(candidate)
    return unique
