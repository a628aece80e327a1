"""Leaderboard ordering, merge and summary statistics.

Ordering is wpm descending, then accuracy descending. Sorting is stable, so entries
that tie on both keep their arrival order (earlier finishers first). Ranks are
never stored: they are the 1-based list position at read time.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .matching import round_half_up


def _first(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _number(value: Any) -> float:
    # Stored results may come back as Decimal/str from the SQL store.
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class LeaderboardEntry:
    """Projection of a stored result used for display and ranking."""

    name: str
    class_name: str
    wpm: float
    accuracy: float
    correct_words: int
    total_words: int
    time_taken: Optional[int] = None
    completed_at: Optional[str] = None
    result_id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LeaderboardEntry":
        """Accept snapshot rows, channel summaries and raw store records."""
        time_taken = _first(payload, "timeTaken", "time_taken")
        result_id = _first(payload, "resultId", "id")
        return cls(
            name=str(_first(payload, "name", "student_name", default="")),
            class_name=str(_first(payload, "class", "class_name", "student_class", default="")),
            wpm=_number(_first(payload, "wpm", default=0)),
            accuracy=_number(_first(payload, "accuracy", default=0)),
            correct_words=int(_first(payload, "correctWords", "correct_words", default=0)),
            total_words=int(_first(payload, "totalWords", "total_words", default=0)),
            time_taken=int(time_taken) if time_taken is not None else None,
            completed_at=_first(payload, "completedAt", "completed_at"),
            result_id=int(result_id) if result_id is not None else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "class": self.class_name,
            "wpm": self.wpm,
            "accuracy": self.accuracy,
            "correctWords": self.correct_words,
            "totalWords": self.total_words,
            "timeTaken": self.time_taken,
            "completedAt": self.completed_at,
            "resultId": self.result_id,
        }


def ranking_key(entry: LeaderboardEntry) -> tuple[float, float]:
    return (-entry.wpm, -entry.accuracy)


def sort_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    return sorted(entries, key=ranking_key)


def contains_result(entries: Iterable[LeaderboardEntry], result_id: Optional[int]) -> bool:
    if result_id is None:
        return False
    return any(entry.result_id == result_id for entry in entries)


def merge_entry(entries: Iterable[LeaderboardEntry], entry: LeaderboardEntry) -> List[LeaderboardEntry]:
    """Append a streamed entry and re-sort the whole list.

    An entry whose result id is already listed is not added twice.
    """
    merged = list(entries)
    if contains_result(merged, entry.result_id):
        return sort_entries(merged)
    merged.append(entry)
    return sort_entries(merged)


def ranked_rows(entries: Iterable[LeaderboardEntry]) -> List[Dict[str, Any]]:
    """Serialize entries with a rank derived from list position."""
    return [{"rank": idx, **entry.to_payload()} for idx, entry in enumerate(entries, start=1)]


@dataclass(frozen=True)
class LeaderboardStats:
    participants: int
    average_wpm: int
    average_accuracy: int
    highest_wpm: float
    lowest_wpm: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "participants": self.participants,
            "averageWpm": self.average_wpm,
            "averageAccuracy": self.average_accuracy,
            "highestWpm": self.highest_wpm,
            "lowestWpm": self.lowest_wpm,
        }


def summarize(entries: Iterable[LeaderboardEntry]) -> LeaderboardStats:
    rows = list(entries)
    if not rows:
        return LeaderboardStats(0, 0, 0, 0, 0)
    wpms = [row.wpm for row in rows]
    accuracies = [row.accuracy for row in rows]
    return LeaderboardStats(
        participants=len(rows),
        average_wpm=round_half_up(sum(wpms) / len(wpms)),
        average_accuracy=round_half_up(sum(accuracies) / len(accuracies)),
        highest_wpm=max(wpms),
        lowest_wpm=min(wpms),
    )
