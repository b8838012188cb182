"""SQLAlchemy Invoice Repository"""

import logging
from typing import Any, Dict, Optional, List, Tuple
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.invoice_repository import InvoiceRepository
from src.domain.invoice import Invoice, InvoiceStatus

logger = logging.getLogger(__name__)

INVOICE_NUMBER_FORMAT = "INV-{year}{month:02d}-{sequence:06d}"


class SqlAlchemyInvoiceRepository(InvoiceRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _first(self, statement) -> Optional[Invoice]:
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def _save(self, invoice: Invoice) -> Invoice:
        self.session.add(invoice)
        await self.session.flush()
        await self.session.refresh(invoice)
        return invoice

    async def create(self, invoice: Invoice) -> Invoice:
        return await self._save(invoice)

    async def get_by_id(self, invoice_id: str, created_by: Optional[str] = None) -> Optional[Invoice]:
        statement = select(Invoice).where(Invoice.id == invoice_id)
        if created_by is not None:
            statement = statement.where(Invoice.created_by == created_by)
        return await self._first(statement)

    async def get_by_gateway_invoice_id(self, gateway_invoice_id: str) -> Optional[Invoice]:
        return await self._first(select(Invoice).where(Invoice.gateway_invoice_id == gateway_invoice_id))

    async def list_invoices(
        self,
        created_by: str,
        project_id: Optional[str] = None,
        status: Optional[InvoiceStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Invoice]:
        filters = [Invoice.created_by == created_by]
        if project_id:
            filters.append(Invoice.project_id == project_id)
        if status:
            filters.append(Invoice.status == status)

        statement = (
            select(Invoice)
            .where(*filters)
            .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def update(self, invoice: Invoice) -> Invoice:
        invoice.updated_at = datetime.utcnow()
        return await self._save(invoice)

    async def delete(self, invoice: Invoice) -> None:
        await self.session.delete(invoice)
        await self.session.flush()

    async def upsert_by_gateway_id(
        self,
        gateway_invoice_id: str,
        patch: Dict[str, Any],
        defaults: Dict[str, Any],
    ) -> Tuple[Invoice, bool]:
        # A lost insert race rolls the whole session back, so this has to be
        # the first write of its transaction.
        existing = await self.get_by_gateway_invoice_id(gateway_invoice_id)
        if existing is not None:
            return await self._patch(existing, patch), False

        fields = {**defaults, **patch, "gateway_invoice_id": gateway_invoice_id}
        if not fields.get("invoice_number"):
            fields["invoice_number"] = await self.generate_invoice_number()
        invoice = Invoice(**fields)

        try:
            self.session.add(invoice)
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            winner = await self.get_by_gateway_invoice_id(gateway_invoice_id)
            if winner is None:
                raise
            logger.info(f"Gateway invoice {gateway_invoice_id} inserted concurrently; updating instead")
            return await self._patch(winner, patch), False

        await self.session.refresh(invoice)
        return invoice, True

    async def _patch(self, invoice: Invoice, patch: Dict[str, Any]) -> Invoice:
        for key, value in patch.items():
            setattr(invoice, key, value)
        return await self.update(invoice)

    async def generate_invoice_number(self) -> str:
        now = datetime.utcnow()
        prefix = f"INV-{now.year}{now.month:02d}-"
        latest = await self.session.execute(
            select(func.max(Invoice.invoice_number)).where(Invoice.invoice_number.like(f"{prefix}%"))
        )
        last = latest.scalar_one_or_none()
        sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
        return INVOICE_NUMBER_FORMAT.format(year=now.year, month=now.month, sequence=sequence)
