"""
Spectator-side leaderboard.

The view joins the event's channel first and only then fetches the full ranked
snapshot (HTTP), so a result stored while the snapshot is loading arrives through
the stream if it is not in the snapshot. Streamed results already present in the
snapshot are matched by result id and dropped. Every NEW_RESULT is merged and the
whole list re-sorted.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import websockets
from pydantic import BaseModel

from typearena.core.messages import (
    ErrorMessage,
    JoinedMessage,
    JoinMessage,
    LeaveMessage,
    NewResultMessage,
    PingMessage,
    PongMessage,
    dump_message,
    parse_server_message,
)
from typearena.core.ranking import (
    LeaderboardEntry,
    LeaderboardStats,
    contains_result,
    merge_entry,
    ranked_rows,
    sort_entries,
    summarize,
)

from .api_client import ArenaClient

logger = logging.getLogger(__name__)

JOIN_TIMEOUT_SEC = 10.0

UpdateCallback = Callable[["LeaderboardView"], Optional[Awaitable[None]]]


class LeaderboardView:
    def __init__(self, client: ArenaClient, event_id: int):
        self.client = client
        self.event_id = int(event_id)
        self.entries: List[LeaderboardEntry] = []
        self.joined = False

    async def refresh(self) -> List[LeaderboardEntry]:
        rows = await self.client.fetch_leaderboard(self.event_id)
        self.entries = sort_entries(LeaderboardEntry.from_payload(row) for row in rows)
        return self.entries

    async def join(self, ws, timeout: float = JOIN_TIMEOUT_SEC) -> None:
        """Subscribe `ws` to this event, wait for JOINED, then load the snapshot.

        NEW_RESULT frames that arrive before JOINED are held back and merged
        after the snapshot; duplicates of snapshot rows are dropped.
        """
        self.joined = False
        await ws.send(dump_message(JoinMessage(eventId=self.event_id)))
        early = await asyncio.wait_for(self._await_joined(ws), timeout=timeout)
        await self.refresh()
        for message in early:
            self.apply(message)

    async def _await_joined(self, ws) -> List[NewResultMessage]:
        early: List[NewResultMessage] = []
        while not self.joined:
            raw = await ws.recv()
            try:
                message = parse_server_message(raw)
            except ValueError as exc:
                logger.warning("Ignoring malformed leaderboard frame: %s", exc)
                continue
            if isinstance(message, JoinedMessage):
                if message.eventId == self.event_id:
                    self.joined = True
            elif isinstance(message, NewResultMessage):
                early.append(message)
            elif isinstance(message, PingMessage):
                await ws.send(dump_message(PongMessage(timestamp=message.timestamp)))
            elif isinstance(message, ErrorMessage):
                logger.warning("Leaderboard channel error %s: %s", message.code.value, message.message)
        return early

    async def leave(self, ws) -> None:
        await ws.send(dump_message(LeaveMessage(eventId=self.event_id)))
        self.joined = False

    def apply(self, message: Union[NewResultMessage, Dict[str, Any], str, bytes]) -> bool:
        """Merge one NEW_RESULT; frames for other events and known results are ignored."""
        if not isinstance(message, BaseModel):
            message = parse_server_message(message)
        if not isinstance(message, NewResultMessage) or message.eventId != self.event_id:
            return False
        entry = LeaderboardEntry.from_payload(message.result.model_dump(by_alias=True))
        if contains_result(self.entries, entry.result_id):
            logger.debug("Result %s already on the leaderboard", entry.result_id)
            return False
        self.entries = merge_entry(self.entries, entry)
        return True

    def rows(self) -> List[Dict[str, Any]]:
        return ranked_rows(self.entries)

    def stats(self) -> LeaderboardStats:
        return summarize(self.entries)

    async def listen(self, ws, on_update: Optional[UpdateCallback] = None) -> None:
        """Consume server frames until the connection closes."""
        try:
            async for raw in ws:
                try:
                    message = parse_server_message(raw)
                except ValueError as exc:
                    logger.warning("Ignoring malformed leaderboard frame: %s", exc)
                    continue

                if isinstance(message, PingMessage):
                    await ws.send(dump_message(PongMessage(timestamp=message.timestamp)))
                elif isinstance(message, JoinedMessage):
                    if message.eventId == self.event_id:
                        self.joined = True
                elif isinstance(message, ErrorMessage):
                    logger.warning("Leaderboard channel error %s: %s", message.code.value, message.message)
                elif self.apply(message) and on_update is not None:
                    result = on_update(self)
                    if result is not None:
                        await result
        except websockets.exceptions.ConnectionClosed as exc:
            logger.info("Leaderboard connection closed: %s", exc)
        finally:
            self.joined = False

    async def run(self, on_update: Optional[UpdateCallback] = None) -> None:
        """Connect to the server's leaderboard socket, join and listen."""
        async with websockets.connect(self.client.ws_url) as ws:
            await self.join(ws)
            await self.listen(ws, on_update)
