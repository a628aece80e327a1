# typearena/api/sessions.py
"""
Participant entry: invite-code redemption and passage fetch.

- POST `/api/student/login`: redeem a code for a short-lived session credential
- GET `/api/events/{event_id}/passage`: passage + timer for the credential's event
"""

# -------------------- Standard library imports --------------------
import logging
import os
from typing import Any, Dict, Optional

# -------------------- Third-party imports --------------------
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

# -------------------- Local application imports --------------------
from typearena.auth.deps import require_event_participant
from typearena.auth.service import create_session_credential
from typearena.errors import (
    CodeAlreadyUsed,
    EventNotFound,
    NotActive,
    NotFound,
    RateLimited,
    ValidationFailed,
)
from typearena.rate_limit import REDEEM, check_rate_limit
from typearena.storage import get_store

logger = logging.getLogger(__name__)

router = APIRouter()

ACTIVE_STATUS = "active"


def allow_code_reuse() -> bool:
    """
    Invite codes are single-use by default.

    Set ALLOW_CODE_REUSE=1/true/yes to treat `is_used` as advisory only.
    """
    return os.getenv("ALLOW_CODE_REUSE", "").strip().lower() in {"1", "true", "yes", "on"}


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request, action: str) -> None:
    allowed, reason = check_rate_limit(client_key(request), action)
    if not allowed:
        logger.warning("Rate limit hit for %s (%s): %s", client_key(request), action, reason)
        raise RateLimited()


class RedeemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1, max_length=32)
    name: Optional[str] = Field(default=None, max_length=200)
    class_name: Optional[str] = Field(default=None, alias="class", max_length=100)


@router.post("/student/login")
async def redeem(payload: RedeemRequest, request: Request) -> Dict[str, Any]:
    enforce_rate_limit(request, REDEEM)
    store = get_store()

    code = payload.code.strip().upper()
    invite = await store.find_invite_code(code)
    if invite is None:
        logger.info("Redeem failed: unknown code from %s", client_key(request))
        raise NotFound()
    if invite.get("is_used") and not allow_code_reuse():
        raise CodeAlreadyUsed()

    event = await store.get_event(invite["event_id"])
    if event is None:
        raise EventNotFound()
    if event.get("status") != ACTIVE_STATUS:
        raise NotActive()

    # A code bound to a participant carries its identity; otherwise the caller supplies it.
    name = (invite.get("name") or "").strip() or (payload.name or "").strip()
    class_name = (invite.get("class_name") or "").strip() or (payload.class_name or "").strip()
    if not name or not class_name:
        raise ValidationFailed("name_required")

    token = create_session_credential(
        invite_code_id=invite["id"],
        name=name,
        class_name=class_name,
        event_id=event["id"],
    )
    await store.append_audit(
        "CODE_REDEEMED",
        {"event_id": event["id"], "invite_code_id": invite["id"], "name": name},
        {"ip": client_key(request)},
    )
    logger.info("Code redeemed for event %s by %s (%s)", event["id"], name, class_name)
    return {
        "token": token,
        "name": name,
        "class": class_name,
        "eventId": event["id"],
        "eventName": event.get("name"),
    }


@router.get("/events/{event_id}/passage")
async def get_passage(
    event_id: int,
    identity: Dict[str, Any] = Depends(require_event_participant),
) -> Dict[str, Any]:
    event = await get_store().get_event(event_id)
    if event is None:
        raise EventNotFound()
    if event.get("status") != ACTIVE_STATUS:
        raise NotActive()
    return {
        "eventId": event["id"],
        "eventName": event.get("name"),
        "typingText": event.get("typing_text") or "",
        "timerDurationSeconds": int(event.get("timer_duration") or 0),
    }
