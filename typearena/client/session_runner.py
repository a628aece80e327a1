"""
Client-side session driver.

Keystrokes and timer ticks are the only things that mutate a `TypingSession`.
Both are pushed onto one `asyncio.Queue` and applied by a single consumer task,
so the engine never sees two mutations interleave. When the engine finalizes,
the snapshot is submitted exactly once.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from typearena.core.engine import (
    LiveMetrics,
    Participant,
    ScoreSnapshot,
    SessionFinishedError,
    SessionState,
    TypingMatchEngine,
    TypingSession,
)
from typearena.core.passage import Passage

from .api_client import ArenaClient
from .submitter import ResultSubmitter, SubmissionOutcome

logger = logging.getLogger(__name__)

INPUT = "input"
TICK = "tick"
FINISH = "finish"

MetricsCallback = Callable[[LiveMetrics], Any]


class SessionRunner:
    def __init__(
        self,
        client: ArenaClient,
        credential: str,
        passage: Passage,
        participant: Optional[Participant] = None,
        *,
        tick_interval: float = 1.0,
        on_metrics: Optional[MetricsCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.credential = credential
        self.submitter = ResultSubmitter(client)
        self.session = TypingSession(passage=passage, participant=participant)
        self.engine = TypingMatchEngine(self.session, on_finalize=self._on_finalize)
        self.tick_interval = tick_interval
        self.on_metrics = on_metrics
        self._sleep = sleep
        self._queue: asyncio.Queue = asyncio.Queue()
        self._submission: Optional[asyncio.Task] = None
        self._ticker_task: Optional[asyncio.Task] = None

    @classmethod
    async def from_code(
        cls,
        client: ArenaClient,
        code: str,
        name: Optional[str] = None,
        class_name: Optional[str] = None,
        **kwargs,
    ) -> "SessionRunner":
        """Redeem an invite code and load the event's passage."""
        login: Dict[str, Any] = await client.redeem(code, name, class_name)
        passage = await client.fetch_passage(login["token"], login["eventId"])
        participant = Participant(name=login["name"], class_name=login["class"], event_id=login["eventId"])
        return cls(client, login["token"], passage, participant, **kwargs)

    # -------------------- producers --------------------

    def keystroke(self, value: str) -> None:
        """Queue the full current input value."""
        self._queue.put_nowait((INPUT, value))

    def finish(self) -> None:
        self._queue.put_nowait((FINISH, None))

    async def _ticker(self) -> None:
        # Started on the first keystroke, so each tick is a full interval after it.
        while not self.engine.is_finished:
            await self._sleep(self.tick_interval)
            self._queue.put_nowait((TICK, None))

    # -------------------- consumer --------------------

    def _on_finalize(self, snapshot: ScoreSnapshot) -> None:
        # Called once by the engine; the submit runs concurrently with the consumer.
        self._submission = asyncio.ensure_future(self.submitter.submit(self.credential, snapshot))

    def _apply(self, kind: str, value: Optional[str]) -> Optional[LiveMetrics]:
        if kind == INPUT:
            return self.engine.handle_input(value or "")
        if kind == TICK:
            return self.engine.tick()
        self.engine.finish()
        return self.engine.metrics()

    def _start_ticker(self) -> None:
        if self._ticker_task is None and self.engine.state is SessionState.ACTIVE:
            self._ticker_task = asyncio.create_task(self._ticker())

    async def _stop_ticker(self) -> None:
        if self._ticker_task is None:
            return
        self._ticker_task.cancel()
        try:
            await self._ticker_task
        except asyncio.CancelledError:
            pass

    async def run(self) -> SubmissionOutcome:
        """Consume queued events until the session finishes; returns the submission outcome."""
        try:
            while not self.engine.is_finished:
                kind, value = await self._queue.get()
                metrics = self._apply(kind, value)
                self._start_ticker()
                if metrics is not None and self.on_metrics is not None:
                    self.on_metrics(metrics)
        finally:
            await self._stop_ticker()

        dropped = self._queue.qsize()
        if dropped:
            logger.debug("Dropping %s events queued after finish", dropped)
        if self._submission is None:
            raise SessionFinishedError("session finished without a result submission")
        return await self._submission
