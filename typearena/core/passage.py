"""Passage model and word segmentation.

A passage is split into *words*, where each word carries its trailing boundary
character (space or line break) when one is present:

    "cat dog\\n"  -> ["cat ", "dog\\n"]
    "one  two"   -> ["one ", " ", "two"]

The word list drives both `total_words` and the strict word matcher in
`typearena.core.matching`, so `correct_words <= total_words` always holds.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Tuple

# Characters that terminate a word in the passage.
BOUNDARY_CHARS = (" ", "\n")

# Timer duration used when an event does not specify one (seconds).
DEFAULT_TIMER_DURATION_SEC = 60


def split_passage_words(text: str) -> List[str]:
    """Split passage text into boundary-inclusive words."""
    words: List[str] = []
    length = len(text)
    idx = 0
    while idx < length:
        end = idx
        while end < length and text[end] not in BOUNDARY_CHARS:
            end += 1
        boundary = text[end] if end < length else ""
        word = text[idx:end] + boundary
        words.append(word)
        idx += len(word)
    return words


def normalize_passage_text(text: str | None) -> str:
    # Browsers submit textarea content with \n line breaks only.
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


@dataclass(frozen=True)
class Passage:
    """Immutable passage text plus the configured countdown (0 = unlimited)."""

    text: str
    timer_duration_seconds: int = 0
    words: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.timer_duration_seconds < 0:
            raise ValueError("timer_duration_seconds must be >= 0")
        object.__setattr__(self, "words", tuple(split_passage_words(self.text)))

    @property
    def total_words(self) -> int:
        return len(self.words)

    @property
    def is_timed(self) -> bool:
        return self.timer_duration_seconds > 0

    def __len__(self) -> int:
        return len(self.text)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Passage":
        """Build a passage from the passage-fetch response.

        Accepts the camelCase API shape (`typingText`, `timerDurationSeconds`) and the
        storage shape (`typing_text`, `timer_duration`). A missing duration falls back to
        `DEFAULT_TIMER_DURATION_SEC`.
        """
        text = payload.get("typingText")
        if text is None:
            text = payload.get("typing_text")
        duration = payload.get("timerDurationSeconds")
        if duration is None:
            duration = payload.get("timer_duration")
        if duration is None:
            duration = DEFAULT_TIMER_DURATION_SEC
        return cls(
            text=normalize_passage_text(text),
            timer_duration_seconds=max(0, int(duration)),
        )
