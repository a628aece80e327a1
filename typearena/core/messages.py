"""Leaderboard channel message models.

Every frame on the leaderboard WebSocket is a JSON object tagged by `type`.

Client -> server: JOIN, LEAVE, PING, PONG
Server -> client: JOINED, LEFT, NEW_RESULT, PING, PONG, ERROR
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ResultSummary(BaseModel):
    """Fields broadcast for a new result (no time taken).

    `resultId` lets a spectator drop a streamed result it already holds from the
    snapshot.
    """

    model_config = ConfigDict(populate_by_name=True)

    resultId: Optional[int] = None
    name: str
    class_name: str = Field(alias="class")
    wpm: float
    accuracy: float
    totalWords: int
    correctWords: int


# ===== Client -> Server =====


class JoinMessage(BaseModel):
    type: Literal["JOIN"] = "JOIN"
    eventId: int


class LeaveMessage(BaseModel):
    type: Literal["LEAVE"] = "LEAVE"
    eventId: int


class PingMessage(BaseModel):
    type: Literal["PING"] = "PING"
    timestamp: Optional[float] = None


class PongMessage(BaseModel):
    type: Literal["PONG"] = "PONG"
    timestamp: Optional[float] = None


ClientMessage = Annotated[
    Union[JoinMessage, LeaveMessage, PingMessage, PongMessage],
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[Any] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes | dict) -> Union[JoinMessage, LeaveMessage, PingMessage, PongMessage]:
    """Parse a client frame. Raises `ValueError` (incl. pydantic errors) on bad input."""
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    if not isinstance(data, dict):
        raise ValueError("message must be a JSON object")
    return _client_message_adapter.validate_python(data)


# ===== Server -> Client =====


class JoinedMessage(BaseModel):
    type: Literal["JOINED"] = "JOINED"
    eventId: int


class LeftMessage(BaseModel):
    type: Literal["LEFT"] = "LEFT"
    eventId: int


class NewResultMessage(BaseModel):
    type: Literal["NEW_RESULT"] = "NEW_RESULT"
    eventId: int
    result: ResultSummary


class ErrorCode(str, Enum):
    INVALID_MESSAGE = "INVALID_MESSAGE"
    NOT_JOINED = "NOT_JOINED"


class ErrorMessage(BaseModel):
    type: Literal["ERROR"] = "ERROR"
    code: ErrorCode
    message: str


ServerMessage = Annotated[
    Union[JoinedMessage, LeftMessage, NewResultMessage, PingMessage, PongMessage, ErrorMessage],
    Field(discriminator="type"),
]

_server_message_adapter: TypeAdapter[Any] = TypeAdapter(ServerMessage)


def parse_server_message(raw: str | bytes | dict):
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    if not isinstance(data, dict):
        raise ValueError("message must be a JSON object")
    return _server_message_adapter.validate_python(data)


def dump_message(message: BaseModel) -> str:
    """Serialize a message model to a JSON text frame (aliases applied)."""
    return message.model_dump_json(by_alias=True)
