# typearena/api/live.py
"""
Live leaderboard WebSocket.

WS `/api/ws/leaderboard`: spectators (unauthenticated) join one or more event groups
and receive a NEW_RESULT frame for every result persisted for those events while
they are joined. Missed results are recovered by fetching
`GET /api/events/{eventId}/results`; the channel never replays.

Client frames: JOIN, LEAVE, PING, PONG. Server frames: JOINED, LEFT, NEW_RESULT,
PING, PONG, ERROR. A heartbeat PING goes out every 30s and the socket is closed
after 60s without a PONG.
"""

# -------------------- Standard library imports --------------------
import asyncio
import logging

# -------------------- Third-party imports --------------------
from fastapi import APIRouter
from starlette.websockets import WebSocket

# -------------------- Local application imports --------------------
from typearena.broadcast import channel
from typearena.core.messages import (
    ErrorCode,
    ErrorMessage,
    JoinedMessage,
    JoinMessage,
    LeaveMessage,
    LeftMessage,
    PingMessage,
    PongMessage,
    dump_message,
    parse_client_message,
)

logger = logging.getLogger(__name__)

router = APIRouter()

HEARTBEAT_INTERVAL_SEC = 30
HEARTBEAT_TIMEOUT_SEC = 60
RECEIVE_TIMEOUT_SEC = 180


async def _heartbeat(ws: WebSocket, last_pong: dict[str, float]) -> None:
    """Send PING every HEARTBEAT_INTERVAL_SEC; close if no PONG for HEARTBEAT_TIMEOUT_SEC."""
    loop = asyncio.get_running_loop()
    while True:
        await asyncio.sleep(HEARTBEAT_INTERVAL_SEC)
        now = loop.time()
        if now - last_pong["ts"] > HEARTBEAT_TIMEOUT_SEC:
            logger.warning("Leaderboard heartbeat timeout, closing")
            try:
                await ws.close(code=1000)
            except RuntimeError as exc:
                logger.debug("Close after heartbeat timeout failed: %s", exc)
            return
        try:
            await ws.send_text(dump_message(PingMessage(timestamp=now)))
        except Exception as exc:
            logger.debug("Heartbeat send failed: %s", exc)
            return


async def _handle_frame(ws: WebSocket, data: str, last_pong: dict[str, float]) -> None:
    try:
        msg = parse_client_message(data)
    except ValueError as exc:
        logger.debug("Invalid leaderboard frame: %s", exc)
        await ws.send_text(
            dump_message(ErrorMessage(code=ErrorCode.INVALID_MESSAGE, message="invalid message"))
        )
        return

    if isinstance(msg, PongMessage):
        last_pong["ts"] = asyncio.get_running_loop().time()
    elif isinstance(msg, PingMessage):
        await ws.send_text(dump_message(PongMessage(timestamp=msg.timestamp)))
    elif isinstance(msg, JoinMessage):
        await channel.join(msg.eventId, ws)
        logger.info(
            "Leaderboard subscriber joined event %s, total: %s",
            msg.eventId,
            await channel.subscriber_count(msg.eventId),
        )
        await ws.send_text(dump_message(JoinedMessage(eventId=msg.eventId)))
    elif isinstance(msg, LeaveMessage):
        if not await channel.is_joined(msg.eventId, ws):
            await ws.send_text(
                dump_message(
                    ErrorMessage(code=ErrorCode.NOT_JOINED, message=f"not joined to {msg.eventId}")
                )
            )
            return
        await channel.leave(msg.eventId, ws)
        await ws.send_text(dump_message(LeftMessage(eventId=msg.eventId)))


@router.websocket("/ws/leaderboard")
async def leaderboard_websocket(ws: WebSocket):
    await ws.accept()
    peer = ws.client.host if ws.client else None
    logger.info("Leaderboard client connected ip=%s", peer)

    last_pong = {"ts": asyncio.get_running_loop().time()}
    heartbeat_task = asyncio.create_task(_heartbeat(ws, last_pong))

    try:
        while True:
            try:
                data = await asyncio.wait_for(ws.receive_text(), timeout=RECEIVE_TIMEOUT_SEC)
            except asyncio.TimeoutError:
                logger.warning("Leaderboard receive timeout ip=%s", peer)
                break
            except Exception as exc:
                # WebSocketDisconnect or a close frame
                logger.debug("Leaderboard receive ended ip=%s: %s", peer, exc)
                break
            await _handle_frame(ws, data, last_pong)
    finally:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass

        await channel.leave_all(ws)
        logger.info("Leaderboard client disconnected ip=%s", peer)

        try:
            await ws.close()
        except RuntimeError:
            # Already closed
            pass
