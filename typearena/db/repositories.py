from typing import Any, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Event, InviteCode, Result


class EventRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields: Any) -> Event:
        event = Event(**fields)
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_by_id(self, event_id: int) -> Event | None:
        return await self.session.get(Event, event_id)

    async def list_all(self) -> Sequence[Event]:
        result = await self.session.execute(select(Event).order_by(Event.created_at.desc()))
        return result.scalars().all()

    async def set_status(self, event_id: int, status: str) -> Event | None:
        event = await self.get_by_id(event_id)
        if event is None:
            return None
        event.status = status
        await self.session.flush()
        return event

    async def delete(self, event_id: int) -> bool:
        # Explicit child deletes so cascade does not depend on the DB dialect.
        await self.session.execute(delete(Result).where(Result.event_id == event_id))
        await self.session.execute(delete(InviteCode).where(InviteCode.event_id == event_id))
        result = await self.session.execute(delete(Event).where(Event.id == event_id))
        return bool(result.rowcount)


class InviteCodeRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, *, event_id: int, code: str, name: str, class_name: str) -> InviteCode:
        invite = InviteCode(event_id=event_id, code=code, name=name, class_name=class_name)
        self.session.add(invite)
        await self.session.flush()
        return invite

    async def code_exists(self, code: str) -> bool:
        result = await self.session.execute(select(InviteCode.id).where(InviteCode.code == code))
        return result.scalar_one_or_none() is not None

    async def get_by_code(self, code: str) -> InviteCode | None:
        result = await self.session.execute(select(InviteCode).where(InviteCode.code == code))
        return result.scalar_one_or_none()

    async def get_by_id(self, code_id: int, *, for_update: bool = False) -> InviteCode | None:
        stmt = select(InviteCode).where(InviteCode.id == code_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_event(self, event_id: int) -> Sequence[InviteCode]:
        result = await self.session.execute(
            select(InviteCode).where(InviteCode.event_id == event_id).order_by(InviteCode.id)
        )
        return result.scalars().all()

    async def delete(self, code_id: int) -> bool:
        result = await self.session.execute(delete(InviteCode).where(InviteCode.id == code_id))
        return bool(result.rowcount)


class ResultRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields: Any) -> Result:
        row = Result(**fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def count_for_code(self, invite_code_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Result.id)).where(Result.invite_code_id == invite_code_id)
        )
        return int(result.scalar_one())

    async def list_ranked(self, event_id: int) -> Sequence[Result]:
        result = await self.session.execute(
            select(Result)
            .where(Result.event_id == event_id)
            .order_by(Result.wpm.desc(), Result.accuracy.desc(), Result.id)
        )
        return result.scalars().all()
