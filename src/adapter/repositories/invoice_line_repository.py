"""SQLAlchemy Invoice Line Repository"""

from typing import List
from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.domain.invoice_line import InvoiceLineItem


class SqlAlchemyInvoiceLineRepository(InvoiceLineRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_invoice_id(self, invoice_id: str) -> List[InvoiceLineItem]:
        result = await self.session.execute(
            select(InvoiceLineItem)
            .where(InvoiceLineItem.invoice_id == invoice_id)
            .order_by(InvoiceLineItem.sort_order, InvoiceLineItem.created_at)
        )
        return list(result.scalars().all())

    async def create_many(self, lines: List[InvoiceLineItem]) -> List[InvoiceLineItem]:
        if not lines:
            return []
        self.session.add_all(lines)
        await self.session.flush()
        return lines

    async def delete_by_invoice_id(self, invoice_id: str) -> int:
        result = await self.session.execute(
            delete(InvoiceLineItem).where(InvoiceLineItem.invoice_id == invoice_id)
        )
        return result.rowcount or 0
