"""SQLAlchemy Project Repository Implementation"""

from typing import Optional, List
from datetime import datetime
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.project_repository import ProjectRepository
from src.domain.project import Project


class SqlAlchemyProjectRepository(ProjectRepository):
    """SQLAlchemy implementation of ProjectRepository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, project_id: str, created_by: Optional[str] = None) -> Optional[Project]:
        statement = select(Project).where(Project.id == project_id)
        if created_by is not None:
            statement = statement.where(Project.created_by == created_by)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_gateway_subscription_id(self, subscription_id: str) -> Optional[Project]:
        statement = select(Project).where(Project.gateway_subscription_id == subscription_id).limit(1)
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def get_by_gateway_customer_id(self, customer_id: str) -> Optional[Project]:
        statement = select(Project).where(Project.gateway_customer_id == customer_id).limit(1)
        result = await self.session.execute(statement)
        return result.scalars().first()

    async def list_by_billing_anchor_day(self, day: int) -> List[Project]:
        statement = (
            select(Project)
            .where(Project.billing_anchor_day == day)
            .order_by(Project.created_at.asc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def update(self, project: Project) -> Project:
        project.updated_at = datetime.utcnow()
        self.session.add(project)
        await self.session.flush()
        await self.session.refresh(project)
        return project
