"""SQLAlchemy Usage Event Repository Implementation"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.usage_event_repository import UsageEventRepository
from src.domain.usage_event import UsageEvent


class SqlAlchemyUsageEventRepository(UsageEventRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, event: UsageEvent) -> UsageEvent:
        self.session.add(event)
        await self.session.flush()
        await self.session.refresh(event)
        return event

    async def list_unqueued_for_period(self, billing_period_id: str, created_by: str) -> List[UsageEvent]:
        statement = (
            select(UsageEvent)
            .where(UsageEvent.billing_period_id == billing_period_id)
            .where(UsageEvent.created_by == created_by)
            .where(UsageEvent.pending_item_id.is_(None))
            .order_by(UsageEvent.event_date.asc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def update(self, event: UsageEvent) -> UsageEvent:
        self.session.add(event)
        await self.session.flush()
        return event
