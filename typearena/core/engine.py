"""Typing session state machine (pure, single-threaded).

A `TypingSession` is the explicit session context: identity, passage, state and the
running counters. It is owned by the caller and handed to a `TypingMatchEngine`,
which is the only thing allowed to mutate it.

State transitions:
- idle -> active: first keystroke (or `start()`), captures the start time
- active -> finished: countdown reaches the configured duration, the typed text
  reaches the passage length, or an explicit `finish()`
- idle -> finished: explicit `finish()` before any keystroke (scores zero)

`finished` is terminal. The transition is a compare-and-set on the state, so a timer
expiry and a keystroke landing in the same loop iteration still produce exactly one
snapshot and exactly one `on_finalize` call.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from .matching import compute_accuracy, compute_wpm, count_correct_words, update_error_positions
from .passage import Passage

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FINISHED = "finished"


class SessionFinishedError(RuntimeError):
    """Raised when a finished session is asked to mutate."""


@dataclass(frozen=True)
class Participant:
    name: str
    class_name: str
    event_id: int


@dataclass(frozen=True)
class ScoreSnapshot:
    """Final metrics of a session; frozen once the session is finished."""

    wpm: int
    accuracy: int
    correct_words: int
    total_words: int
    elapsed_seconds: int

    def to_payload(self) -> Dict[str, int]:
        """Result-submission body (camelCase wire shape)."""
        return {
            "wpm": self.wpm,
            "accuracy": self.accuracy,
            "totalWords": self.total_words,
            "correctWords": self.correct_words,
            "timeTakenSeconds": self.elapsed_seconds,
        }


@dataclass(frozen=True)
class LiveMetrics:
    wpm: int
    correct_words: int
    total_words: int
    error_count: int
    elapsed_seconds: int
    time_left: Optional[int]
    progress: float
    state: SessionState


@dataclass
class TypingSession:
    passage: Passage
    participant: Optional[Participant] = None
    state: SessionState = SessionState.IDLE
    typed: str = ""
    elapsed_seconds: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    finish_reason: Optional[str] = None
    error_positions: Set[int] = field(default_factory=set)
    correct_words: int = 0
    wpm: int = 0
    snapshot: Optional[ScoreSnapshot] = None

    @property
    def total_words(self) -> int:
        return self.passage.total_words


FinalizeCallback = Callable[[ScoreSnapshot], Any]


class TypingMatchEngine:
    """Apply keystrokes and timer ticks to a `TypingSession`."""

    def __init__(
        self,
        session: TypingSession,
        on_finalize: Optional[FinalizeCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self._on_finalize = on_finalize
        self._clock = clock

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_finished(self) -> bool:
        return self.session.state is SessionState.FINISHED

    @property
    def time_left(self) -> Optional[int]:
        """Seconds left on the countdown, or None for an untimed passage."""
        passage = self.session.passage
        if not passage.is_timed:
            return None
        return max(0, passage.timer_duration_seconds - self.session.elapsed_seconds)

    @property
    def progress(self) -> float:
        """Typed share of the passage in [0, 1]."""
        length = len(self.session.passage)
        if length == 0:
            return 1.0 if self.is_finished else 0.0
        return min(1.0, len(self.session.typed) / length)

    def ensure_active(self) -> None:
        if self.is_finished:
            raise SessionFinishedError("typing session already finished")

    def _compare_and_set(self, expected: tuple[SessionState, ...], new: SessionState) -> bool:
        # No await between the check and the write: atomic on a single event loop.
        if self.session.state not in expected:
            return False
        self.session.state = new
        return True

    def start(self) -> bool:
        """Move idle -> active. Returns False when the session was not idle."""
        if not self._compare_and_set((SessionState.IDLE,), SessionState.ACTIVE):
            return False
        self.session.started_at = self._clock()
        logger.debug("Typing session started")
        return True

    def handle_input(self, value: str) -> Optional[LiveMetrics]:
        """Apply the full current input value (not a delta).

        Returns live metrics, or None when the keystroke arrived after the session
        finished (the keystroke is dropped).
        """
        if self.is_finished:
            logger.debug("Dropping keystroke for finished session")
            return None
        if self.session.state is SessionState.IDLE:
            self.start()

        session = self.session
        passage = session.passage
        session.typed = value
        update_error_positions(passage.text, value, session.error_positions)
        session.correct_words = count_correct_words(passage.text, value, passage.words)
        session.wpm = compute_wpm(session.correct_words, session.elapsed_seconds)

        if len(value) >= len(passage):
            self.finalize(reason="completed")
        return self.metrics()

    def tick(self, seconds: int = 1) -> Optional[LiveMetrics]:
        """Advance the elapsed-time counter; ends the session when the countdown expires."""
        if self.session.state is not SessionState.ACTIVE:
            return None
        session = self.session
        session.elapsed_seconds += seconds
        passage = session.passage
        if passage.is_timed and session.elapsed_seconds >= passage.timer_duration_seconds:
            session.elapsed_seconds = passage.timer_duration_seconds
            self.finalize(reason="timeout")
        return self.metrics()

    def finish(self) -> ScoreSnapshot:
        """External finish signal."""
        return self.finalize(reason="finished")

    def finalize(self, reason: str = "finished") -> ScoreSnapshot:
        """Freeze metrics and move to finished; later calls return the same snapshot."""
        if not self._compare_and_set(
            (SessionState.IDLE, SessionState.ACTIVE), SessionState.FINISHED
        ):
            if self.session.snapshot is None:
                raise SessionFinishedError("typing session finished without a snapshot")
            return self.session.snapshot

        session = self.session
        session.finished_at = self._clock()
        session.finish_reason = reason
        snapshot = ScoreSnapshot(
            wpm=compute_wpm(session.correct_words, session.elapsed_seconds),
            accuracy=compute_accuracy(session.total_words, len(session.error_positions)),
            correct_words=session.correct_words,
            total_words=session.total_words,
            elapsed_seconds=session.elapsed_seconds,
        )
        session.wpm = snapshot.wpm
        session.snapshot = snapshot
        logger.info(
            "Typing session finished (%s): wpm=%s accuracy=%s words=%s/%s elapsed=%ss",
            reason,
            snapshot.wpm,
            snapshot.accuracy,
            snapshot.correct_words,
            snapshot.total_words,
            snapshot.elapsed_seconds,
        )
        if self._on_finalize is not None:
            self._on_finalize(snapshot)
        return snapshot

    def metrics(self) -> LiveMetrics:
        session = self.session
        return LiveMetrics(
            wpm=session.wpm,
            correct_words=session.correct_words,
            total_words=session.total_words,
            error_count=len(session.error_positions),
            elapsed_seconds=session.elapsed_seconds,
            time_left=self.time_left,
            progress=self.progress,
            state=session.state,
        )
