"""
SQL store: the same async facade as `JsonStore`, backed by the repositories.

Every public method opens its own session and commits on success; SQLAlchemy
errors are logged and surfaced as `ServerError`.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from typearena.errors import ArenaError, ResultAlreadySubmitted, ServerError
from typearena.storage.json_store import build_audit_event, generate_code

from .models import Event, InviteCode, Result
from .repositories import EventRepository, InviteCodeRepository, ResultRepository

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def event_to_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "name": event.name,
        "description": event.description,
        "start_date": event.start_date,
        "end_date": event.end_date,
        "status": event.status,
        "typing_text": event.typing_text,
        "timer_duration": event.timer_duration,
        "created_at": _iso(event.created_at),
    }


def invite_to_dict(invite: InviteCode) -> dict:
    return {
        "id": invite.id,
        "code": invite.code,
        "event_id": invite.event_id,
        "name": invite.name,
        "class_name": invite.class_name,
        "is_used": invite.is_used,
        "created_at": _iso(invite.created_at),
    }


def result_to_dict(row: Result) -> dict:
    return {
        "id": row.id,
        "invite_code_id": row.invite_code_id,
        "event_id": row.event_id,
        "name": row.name,
        "class_name": row.class_name,
        "wpm": row.wpm,
        "accuracy": row.accuracy,
        "total_words": row.total_words,
        "correct_words": row.correct_words,
        "time_taken": row.time_taken,
        "completed_at": _iso(row.completed_at),
    }


class SqlStore:
    def __init__(self, session_factory: async_sessionmaker | None = None):
        if session_factory is None:
            from .database import AsyncSessionLocal

            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except ArenaError:
                await session.rollback()
                raise
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Database operation failed: %s", exc, exc_info=True)
                raise ServerError("storage_unavailable") from exc

    # -------------------- events --------------------

    async def list_events(self) -> List[dict]:
        async with self._session() as session:
            return [event_to_dict(e) for e in await EventRepository(session).list_all()]

    async def get_event(self, event_id: int) -> Optional[dict]:
        async with self._session() as session:
            event = await EventRepository(session).get_by_id(int(event_id))
            return event_to_dict(event) if event else None

    async def create_event(self, data: dict) -> dict:
        async with self._session() as session:
            event = await EventRepository(session).create(**data)
            return event_to_dict(event)

    async def update_event_status(self, event_id: int, status: str) -> Optional[dict]:
        async with self._session() as session:
            event = await EventRepository(session).set_status(int(event_id), status)
            return event_to_dict(event) if event else None

    async def delete_event(self, event_id: int) -> bool:
        async with self._session() as session:
            return await EventRepository(session).delete(int(event_id))

    # -------------------- invite codes --------------------

    async def create_invite_codes(self, event_id: int, participants: List[dict]) -> List[dict]:
        async with self._session() as session:
            repo = InviteCodeRepository(session)
            created = []
            for participant in participants:
                code = generate_code()
                while await repo.code_exists(code):
                    code = generate_code()
                invite = await repo.create(
                    event_id=int(event_id),
                    code=code,
                    name=participant.get("name") or "",
                    class_name=participant.get("class_name") or "",
                )
                created.append(invite_to_dict(invite))
            return created

    async def list_invite_codes(self, event_id: int) -> List[dict]:
        async with self._session() as session:
            rows = await InviteCodeRepository(session).list_for_event(int(event_id))
            return [invite_to_dict(row) for row in rows]

    async def find_invite_code(self, code: str) -> Optional[dict]:
        async with self._session() as session:
            invite = await InviteCodeRepository(session).get_by_code(code)
            return invite_to_dict(invite) if invite else None

    async def get_invite_code(self, code_id: int) -> Optional[dict]:
        async with self._session() as session:
            invite = await InviteCodeRepository(session).get_by_id(int(code_id))
            return invite_to_dict(invite) if invite else None

    async def delete_invite_code(self, code_id: int) -> bool:
        async with self._session() as session:
            return await InviteCodeRepository(session).delete(int(code_id))

    # -------------------- results --------------------

    async def add_result(self, record: dict, *, single_use: bool = True) -> dict:
        code_id = int(record["invite_code_id"])
        async with self._session() as session:
            # Row lock on the code serializes concurrent submissions for it.
            invite = await InviteCodeRepository(session).get_by_id(code_id, for_update=True)
            results = ResultRepository(session)
            if single_use and await results.count_for_code(code_id):
                raise ResultAlreadySubmitted()
            row = await results.create(**record)
            if invite is not None:
                invite.is_used = True
            return result_to_dict(row)

    async def list_results(self, event_id: int) -> List[dict]:
        async with self._session() as session:
            rows = await ResultRepository(session).list_ranked(int(event_id))
            return [result_to_dict(row) for row in rows]

    # -------------------- audit --------------------

    async def append_audit(self, action: str, payload: dict, actor: Optional[dict] = None) -> None:
        # No audit table; records go to the application log.
        logger.info("audit %s", build_audit_event(action=action, payload=payload, actor=actor))


__all__ = ["SqlStore", "event_to_dict", "invite_to_dict", "result_to_dict"]
