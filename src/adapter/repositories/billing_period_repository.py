"""SQLAlchemy Billing Period Repository Implementation

Implements billing period persistence using SQLAlchemy async session.
"""

from datetime import date
from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.domain.billing_period import BillingPeriod


class SqlAlchemyBillingPeriodRepository(BillingPeriodRepository):
    """SQLAlchemy implementation of BillingPeriodRepository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, period: BillingPeriod) -> BillingPeriod:
        self.session.add(period)
        await self.session.flush()
        await self.session.refresh(period)
        return period

    async def get_by_id(self, period_id: str, created_by: Optional[str] = None) -> Optional[BillingPeriod]:
        statement = select(BillingPeriod).where(BillingPeriod.id == period_id)
        if created_by is not None:
            statement = statement.where(BillingPeriod.created_by == created_by)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_by_project(self, project_id: str, created_by: str) -> List[BillingPeriod]:
        statement = (
            select(BillingPeriod)
            .where(BillingPeriod.project_id == project_id)
            .where(BillingPeriod.created_by == created_by)
            .order_by(BillingPeriod.period_start.desc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def find_covering(self, project_id: str, day: date, created_by: str) -> Optional[BillingPeriod]:
        statement = (
            select(BillingPeriod)
            .where(BillingPeriod.project_id == project_id)
            .where(BillingPeriod.created_by == created_by)
            .where(BillingPeriod.period_start <= day)
            .where(BillingPeriod.period_end >= day)
            .order_by(BillingPeriod.period_start.desc())
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.scalars().first()
