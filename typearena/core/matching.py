"""Keystroke matching and score arithmetic (pure, no I/O).

Matching rules:
- Error positions are recomputed over the whole typed prefix on every keystroke.
  An index is added when the typed char differs from the passage (or runs past it)
  and removed once it matches again. Indices past the typed prefix are left alone.
- Word correctness is strict and positional: the passage word *including* its
  boundary char is compared to the typed slice of the same length at the same
  offset. Both cursors always advance by the passage word length, so one missing
  or extra char fails every following word.

Score formulas:
- wpm      = round(correct_words / max(elapsed_seconds, 1) * 60)
- accuracy = round((total_words - error_count) / total_words * 100), 0 when the
  passage is empty, floored at 0.
"""
from __future__ import annotations

import math
from typing import Optional, Sequence, Set

from .passage import split_passage_words


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (matches browser Math.round)."""
    return int(math.floor(value + 0.5))


def update_error_positions(passage: str, typed: str, errors: Set[int]) -> Set[int]:
    """Rescan `typed` against `passage` and update `errors` in place."""
    passage_len = len(passage)
    for idx, char in enumerate(typed):
        if idx < passage_len and char == passage[idx]:
            errors.discard(idx)
        else:
            errors.add(idx)
    return errors


def error_positions(passage: str, typed: str) -> Set[int]:
    return update_error_positions(passage, typed, set())


def count_correct_words(
    passage: str,
    typed: str,
    words: Optional[Sequence[str]] = None,
) -> int:
    """Count passage words reproduced exactly at their own offset in `typed`.

    `words` may be passed when the caller already holds the segmented passage.
    """
    if words is None:
        words = split_passage_words(passage)
    correct = 0
    offset = 0
    typed_len = len(typed)
    for word in words:
        if offset >= typed_len:
            break
        if typed[offset:offset + len(word)] == word:
            correct += 1
        offset += len(word)
    return correct


def compute_wpm(correct_words: int, elapsed_seconds: float) -> int:
    return round_half_up(correct_words / max(elapsed_seconds, 1) * 60)


def compute_accuracy(total_words: int, error_count: int) -> int:
    if total_words <= 0:
        return 0
    return max(0, round_half_up((total_words - error_count) / total_words * 100))
