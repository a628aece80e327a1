# typearena/api/results.py
"""
Result submission and leaderboard snapshots.

Submitting persists the result and then publishes a NEW_RESULT to the event's
leaderboard group. The two effects are independent: a publish failure is logged and
the request still succeeds, since spectators recover through the snapshot endpoint.
"""

import io
import logging
from typing import Any, Dict, List

import pandas as pd
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field, model_validator

from typearena.api.sessions import allow_code_reuse, enforce_rate_limit
from typearena.auth.deps import require_admin, require_participant
from typearena.broadcast import channel
from typearena.core.messages import ResultSummary
from typearena.core.ranking import LeaderboardEntry, ranked_rows, sort_entries, summarize
from typearena.errors import EventNotFound, NotFound
from typearena.rate_limit import SUBMIT
from typearena.storage import get_store

logger = logging.getLogger(__name__)

router = APIRouter()


class ResultSubmission(BaseModel):
    wpm: float = Field(ge=0)
    accuracy: float = Field(ge=0, le=100)
    totalWords: int = Field(ge=0)
    correctWords: int = Field(ge=0)
    timeTakenSeconds: int = Field(ge=0)

    @model_validator(mode="after")
    def _correct_within_total(self):
        if self.correctWords > self.totalWords:
            raise ValueError("correctWords must not exceed totalWords")
        return self


async def _entries_for_event(event_id: int) -> List[LeaderboardEntry]:
    store = get_store()
    if await store.get_event(event_id) is None:
        raise EventNotFound()
    rows = await store.list_results(event_id)
    return sort_entries(LeaderboardEntry.from_payload(row) for row in rows)


@router.post("/results")
async def submit_result(
    payload: ResultSubmission,
    request: Request,
    identity: Dict[str, Any] = Depends(require_participant),
) -> Dict[str, Any]:
    enforce_rate_limit(request, SUBMIT)
    store = get_store()

    if await store.get_invite_code(identity["invite_code_id"]) is None:
        raise NotFound()
    if await store.get_event(identity["event_id"]) is None:
        raise EventNotFound()

    row = await store.add_result(
        {
            "invite_code_id": identity["invite_code_id"],
            "event_id": identity["event_id"],
            "name": identity["name"],
            "class_name": identity["class_name"],
            "wpm": payload.wpm,
            "accuracy": payload.accuracy,
            "total_words": payload.totalWords,
            "correct_words": payload.correctWords,
            "time_taken": payload.timeTakenSeconds,
        },
        single_use=not allow_code_reuse(),
    )
    logger.info(
        "Result %s stored for event %s: %s wpm=%s accuracy=%s",
        row["id"],
        identity["event_id"],
        identity["name"],
        payload.wpm,
        payload.accuracy,
    )
    await store.append_audit(
        "RESULT_SUBMITTED",
        {"event_id": identity["event_id"], "result_id": row["id"], "name": identity["name"]},
        {"ip": request.client.host if request.client else None},
    )

    summary = ResultSummary(
        resultId=row["id"],
        name=identity["name"],
        class_name=identity["class_name"],
        wpm=payload.wpm,
        accuracy=payload.accuracy,
        totalWords=payload.totalWords,
        correctWords=payload.correctWords,
    )
    try:
        delivered = await channel.publish(identity["event_id"], summary)
        logger.debug("NEW_RESULT for event %s delivered to %s", identity["event_id"], delivered)
    except Exception as exc:
        logger.error("Publish failed for result %s: %s", row["id"], exc, exc_info=True)

    return {"status": "ok", "resultId": row["id"]}


@router.get("/events/{event_id}/results")
async def list_results(event_id: int) -> List[Dict[str, Any]]:
    """Ranked snapshot: wpm desc, then accuracy desc."""
    return [entry.to_payload() for entry in await _entries_for_event(event_id)]


@router.get("/events/{event_id}/results/stats")
async def results_stats(event_id: int, claims=Depends(require_admin)) -> Dict[str, Any]:
    return summarize(await _entries_for_event(event_id)).to_payload()


CSV_COLUMNS = ["rank", "name", "class", "wpm", "accuracy", "correctWords", "totalWords", "timeTaken", "completedAt"]


@router.get("/events/{event_id}/results.csv")
async def export_results_csv(event_id: int, claims=Depends(require_admin)) -> Response:
    rows = ranked_rows(await _entries_for_event(event_id))
    frame = pd.DataFrame(rows, columns=CSV_COLUMNS)
    buffer = io.StringIO()
    frame.to_csv(buffer, index=False)
    filename = f"event_{event_id}_results.csv"
    logger.info("Exported %s results for event %s", len(rows), event_id)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
