"""SQLAlchemy Client Repository Implementation"""

from typing import Optional
from datetime import datetime
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.client_repository import ClientRepository
from src.domain.client import Client


class SqlAlchemyClientRepository(ClientRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, client_id: str, created_by: Optional[str] = None) -> Optional[Client]:
        statement = select(Client).where(Client.id == client_id)
        if created_by is not None:
            statement = statement.where(Client.created_by == created_by)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def update(self, client: Client) -> Client:
        client.updated_at = datetime.utcnow()
        self.session.add(client)
        await self.session.flush()
        await self.session.refresh(client)
        return client
