import logging
from dataclasses import dataclass
from typing import Optional

from typearena.core.engine import ScoreSnapshot
from typearena.errors import ArenaError

from .api_client import ArenaClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionOutcome:
    ok: bool
    result_id: Optional[int] = None
    # Single user-visible sentence when `ok` is False
    message: Optional[str] = None
    error: Optional[ArenaError] = None


class ResultSubmitter:
    """
    Sends a finalized snapshot bound to a session credential.

    A failure is logged and reported once; there is no automatic retry, so a
    result is never stored twice by the client.
    """

    def __init__(self, client: ArenaClient):
        self.client = client

    async def submit(self, credential: str, snapshot: ScoreSnapshot) -> SubmissionOutcome:
        try:
            ack = await self.client.submit(credential, snapshot)
        except ArenaError as exc:
            logger.error("Result submission failed (%s): %s", exc.status_code, exc.detail)
            return SubmissionOutcome(ok=False, message=exc.user_message, error=exc)
        logger.info("Result submitted: id=%s wpm=%s accuracy=%s", ack.get("resultId"), snapshot.wpm, snapshot.accuracy)
        return SubmissionOutcome(ok=True, result_id=ack.get("resultId"))
