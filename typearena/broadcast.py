"""
Per-event leaderboard channel.

Subscribers (open leaderboard WebSockets) are grouped by event id. Publishing a result
delivers one NEW_RESULT frame to every subscriber currently joined to that event and
to nobody else. Delivery is best-effort: a subscriber whose send fails or times out is
dropped from the channel.
"""

import asyncio
import logging
from typing import Any, Dict, Protocol, Set

from typearena.core.messages import NewResultMessage, ResultSummary, dump_message

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SEC = 5.0


class Subscriber(Protocol):
    """Anything with an async `send_text` (a Starlette WebSocket in production)."""

    async def send_text(self, data: str) -> None: ...


class LeaderboardChannel:
    def __init__(self, send_timeout: float = SEND_TIMEOUT_SEC):
        self.send_timeout = send_timeout
        self._groups: Dict[int, Set[Any]] = {}
        self._lock = asyncio.Lock()

    async def join(self, event_id: int, subscriber: Subscriber) -> None:
        """Idempotent: joining twice still yields a single delivery per result."""
        async with self._lock:
            self._groups.setdefault(int(event_id), set()).add(subscriber)

    async def leave(self, event_id: int, subscriber: Subscriber) -> None:
        async with self._lock:
            group = self._groups.get(int(event_id))
            if group is None:
                return
            group.discard(subscriber)
            if not group:
                del self._groups[int(event_id)]

    async def leave_all(self, subscriber: Subscriber) -> None:
        """Remove a subscriber from every group (called on disconnect)."""
        async with self._lock:
            for event_id in list(self._groups):
                group = self._groups[event_id]
                group.discard(subscriber)
                if not group:
                    del self._groups[event_id]

    async def is_joined(self, event_id: int, subscriber: Subscriber) -> bool:
        async with self._lock:
            return subscriber in self._groups.get(int(event_id), set())

    async def subscriber_count(self, event_id: int) -> int:
        async with self._lock:
            return len(self._groups.get(int(event_id), set()))

    async def group_count(self) -> int:
        async with self._lock:
            return len(self._groups)

    async def publish(self, event_id: int, summary: ResultSummary) -> int:
        """Send NEW_RESULT to the event's subscribers; returns how many received it."""
        frame = dump_message(NewResultMessage(eventId=int(event_id), result=summary))
        return await self.send_raw(event_id, frame)

    async def send_raw(self, event_id: int, frame: str) -> int:
        # Snapshot so a slow subscriber never holds the lock.
        async with self._lock:
            subscribers = list(self._groups.get(int(event_id)) or set())

        dead = []
        delivered = 0
        for subscriber in subscribers:
            try:
                await asyncio.wait_for(subscriber.send_text(frame), timeout=self.send_timeout)
                delivered += 1
            except asyncio.TimeoutError:
                logger.warning("Leaderboard send timeout for event %s, dropping subscriber", event_id)
                dead.append(subscriber)
                close = getattr(subscriber, "close", None)
                if close is not None:
                    try:
                        await close(code=1008, reason="Send timeout")
                    except Exception as exc:
                        logger.debug("Close after timeout failed: %s", exc)
            except Exception as exc:
                logger.debug("Leaderboard send failed for event %s: %s", event_id, exc)
                dead.append(subscriber)

        if dead:
            async with self._lock:
                group = self._groups.get(int(event_id))
                if group is not None:
                    for subscriber in dead:
                        group.discard(subscriber)
                    if not group:
                        del self._groups[int(event_id)]
        return delivered

    async def reset(self) -> None:
        async with self._lock:
            self._groups.clear()


channel = LeaderboardChannel()
