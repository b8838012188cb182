"""SQLAlchemy Pending Invoice Item Repository Implementation

Status transitions are issued as conditional UPDATE statements guarded by the
current status, so two transactions can never move the same item twice.
"""

from typing import Optional, List
from datetime import datetime
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.pending_invoice_item_repository import PendingInvoiceItemRepository
from src.domain.pending_invoice_item import PendingInvoiceItem, PendingItemStatus


class SqlAlchemyPendingInvoiceItemRepository(PendingInvoiceItemRepository):
    """
    SQLAlchemy implementation of PendingInvoiceItemRepository

    Features:
    - Pessimistic locking via SELECT FOR UPDATE on selection
    - Compare-and-set status transitions (rowcount checked by callers)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, item: PendingInvoiceItem) -> PendingInvoiceItem:
        self.session.add(item)
        await self.session.flush()
        await self.session.refresh(item)
        return item

    async def get_by_id(self, item_id: str, created_by: Optional[str] = None) -> Optional[PendingInvoiceItem]:
        statement = select(PendingInvoiceItem).where(PendingInvoiceItem.id == item_id)
        if created_by is not None:
            statement = statement.where(PendingInvoiceItem.created_by == created_by)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_ids(
        self,
        item_ids: List[str],
        created_by: Optional[str] = None,
        status: Optional[PendingItemStatus] = None,
        for_update: bool = False,
    ) -> List[PendingInvoiceItem]:
        if not item_ids:
            return []

        statement = select(PendingInvoiceItem).where(PendingInvoiceItem.id.in_(item_ids))
        if created_by is not None:
            statement = statement.where(PendingInvoiceItem.created_by == created_by)
        if status is not None:
            statement = statement.where(PendingInvoiceItem.status == status)
        statement = statement.order_by(PendingInvoiceItem.created_at.asc())

        if for_update:
            statement = statement.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def list_items(
        self,
        created_by: str,
        project_id: Optional[str] = None,
        client_id: Optional[str] = None,
        status: Optional[PendingItemStatus] = None,
        limit: Optional[int] = None,
    ) -> List[PendingInvoiceItem]:
        statement = select(PendingInvoiceItem).where(PendingInvoiceItem.created_by == created_by)

        if project_id:
            statement = statement.where(PendingInvoiceItem.project_id == project_id)
        if client_id:
            statement = statement.where(PendingInvoiceItem.client_id == client_id)
        if status:
            statement = statement.where(PendingInvoiceItem.status == status)

        statement = statement.order_by(PendingInvoiceItem.created_at.desc())
        if limit:
            statement = statement.limit(limit)

        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def list_pending_for_project(
        self,
        project_id: str,
        created_by: Optional[str] = None,
        for_update: bool = False,
    ) -> List[PendingInvoiceItem]:
        statement = (
            select(PendingInvoiceItem)
            .where(PendingInvoiceItem.project_id == project_id)
            .where(PendingInvoiceItem.status == PendingItemStatus.PENDING)
        )
        if created_by is not None:
            statement = statement.where(PendingInvoiceItem.created_by == created_by)
        statement = statement.order_by(PendingInvoiceItem.created_at.asc())

        if for_update:
            statement = statement.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(statement)
        return list(result.scalars().all())

    @staticmethod
    def _transition(item_id: str, created_by: Optional[str], *conditions):
        statement = update(PendingInvoiceItem).where(PendingInvoiceItem.id == item_id, *conditions)
        if created_by is not None:
            statement = statement.where(PendingInvoiceItem.created_by == created_by)
        return statement

    async def mark_billed(
        self,
        item_id: str,
        invoice_id: str,
        line_item_id: Optional[str],
        created_by: Optional[str] = None,
    ) -> bool:
        statement = (
            self._transition(item_id, created_by, PendingInvoiceItem.status == PendingItemStatus.PENDING)
            .values(
                status=PendingItemStatus.BILLED,
                billed_invoice_id=invoice_id,
                billed_invoice_line_item_id=line_item_id,
                updated_at=datetime.utcnow(),
            )
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def mark_voided(self, item_id: str, created_by: Optional[str] = None) -> bool:
        statement = (
            self._transition(item_id, created_by, PendingInvoiceItem.status == PendingItemStatus.PENDING)
            .values(status=PendingItemStatus.VOIDED, updated_at=datetime.utcnow())
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def revert_to_pending(self, item_id: str, invoice_id: str, created_by: Optional[str] = None) -> bool:
        statement = (
            self._transition(
                item_id,
                created_by,
                PendingInvoiceItem.status == PendingItemStatus.BILLED,
                PendingInvoiceItem.billed_invoice_id == invoice_id,
            )
            .values(
                status=PendingItemStatus.PENDING,
                billed_invoice_id=None,
                billed_invoice_line_item_id=None,
                updated_at=datetime.utcnow(),
            )
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1
