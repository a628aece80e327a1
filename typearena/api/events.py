# typearena/api/events.py
"""Admin management of events and invite codes (role `admin` only)."""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from typearena.auth.deps import require_admin
from typearena.core.passage import DEFAULT_TIMER_DURATION_SEC, normalize_passage_text
from typearena.errors import EventNotFound, NotFound
from typearena.storage import get_store

logger = logging.getLogger(__name__)

router = APIRouter()

EventStatus = Literal["upcoming", "active", "completed"]


class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    typingText: str = Field(min_length=1)
    # 0 = unlimited
    timerDuration: int = Field(default=DEFAULT_TIMER_DURATION_SEC, ge=0)


class StatusUpdate(BaseModel):
    status: EventStatus


class ParticipantIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=200)
    class_name: str = Field(alias="class", min_length=1, max_length=100)


class InviteCodesCreate(BaseModel):
    participants: List[ParticipantIn] = Field(min_length=1, max_length=500)


def event_payload(event: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": event["id"],
        "name": event.get("name"),
        "description": event.get("description"),
        "startDate": event.get("start_date"),
        "endDate": event.get("end_date"),
        "status": event.get("status"),
        "typingText": event.get("typing_text"),
        "timerDuration": event.get("timer_duration"),
        "createdAt": event.get("created_at"),
    }


def invite_payload(invite: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": invite["id"],
        "code": invite.get("code"),
        "eventId": invite.get("event_id"),
        "name": invite.get("name"),
        "class": invite.get("class_name"),
        "isUsed": bool(invite.get("is_used")),
        "createdAt": invite.get("created_at"),
    }


def _actor(claims: Dict[str, Any]) -> Dict[str, Any]:
    return {"username": claims.get("sub"), "role": claims.get("role")}


async def _require_event(event_id: int) -> Dict[str, Any]:
    event = await get_store().get_event(event_id)
    if event is None:
        raise EventNotFound()
    return event


@router.post("/events", status_code=201)
async def create_event(payload: EventCreate, claims=Depends(require_admin)):
    store = get_store()
    event = await store.create_event(
        {
            "name": payload.name.strip(),
            "description": payload.description,
            "start_date": payload.startDate,
            "end_date": payload.endDate,
            "status": "upcoming",
            "typing_text": normalize_passage_text(payload.typingText),
            "timer_duration": payload.timerDuration,
        }
    )
    await store.append_audit("EVENT_CREATED", {"event_id": event["id"]}, _actor(claims))
    logger.info("Event %s created by %s", event["id"], claims.get("sub"))
    return event_payload(event)


@router.get("/events")
async def list_events(claims=Depends(require_admin)):
    return [event_payload(event) for event in await get_store().list_events()]


@router.get("/events/{event_id}")
async def get_event(event_id: int, claims=Depends(require_admin)):
    return event_payload(await _require_event(event_id))


@router.put("/events/{event_id}/status")
async def update_status(event_id: int, payload: StatusUpdate, claims=Depends(require_admin)):
    store = get_store()
    event = await store.update_event_status(event_id, payload.status)
    if event is None:
        raise EventNotFound()
    await store.append_audit(
        "EVENT_STATUS", {"event_id": event_id, "status": payload.status}, _actor(claims)
    )
    logger.info("Event %s status -> %s", event_id, payload.status)
    return event_payload(event)


@router.delete("/events/{event_id}")
async def delete_event(event_id: int, claims=Depends(require_admin)):
    store = get_store()
    if not await store.delete_event(event_id):
        raise EventNotFound()
    await store.append_audit("EVENT_DELETED", {"event_id": event_id}, _actor(claims))
    logger.info("Event %s deleted with its codes and results", event_id)
    return {"status": "deleted"}


@router.post("/events/{event_id}/invite-codes", status_code=201)
async def create_invite_codes(
    event_id: int, payload: InviteCodesCreate, claims=Depends(require_admin)
):
    await _require_event(event_id)
    store = get_store()
    created = await store.create_invite_codes(
        event_id,
        [{"name": p.name.strip(), "class_name": p.class_name.strip()} for p in payload.participants],
    )
    await store.append_audit(
        "INVITE_CODES_CREATED", {"event_id": event_id, "count": len(created)}, _actor(claims)
    )
    return [invite_payload(invite) for invite in created]


@router.get("/events/{event_id}/invite-codes")
async def list_invite_codes(event_id: int, claims=Depends(require_admin)):
    await _require_event(event_id)
    return [invite_payload(invite) for invite in await get_store().list_invite_codes(event_id)]


@router.delete("/invite-codes/{code_id}")
async def delete_invite_code(code_id: int, claims=Depends(require_admin)):
    store = get_store()
    if not await store.delete_invite_code(code_id):
        raise NotFound("invite_code_not_found")
    await store.append_audit("INVITE_CODE_DELETED", {"invite_code_id": code_id}, _actor(claims))
    return {"status": "deleted"}
