"""Invoice mirror persistence contract"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, List, Tuple
from src.domain.invoice import Invoice, InvoiceStatus


class InvoiceRepository(ABC):
    """
    Local copies of gateway invoices

    gateway_invoice_id and invoice_number are both unique; lookups by
    gateway id are unscoped because gateway events carry no owner.
    """

    @abstractmethod
    async def create(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def get_by_id(self, invoice_id: str, created_by: Optional[str] = None) -> Optional[Invoice]:
        """None when the invoice is missing or owned by someone else"""
        pass

    @abstractmethod
    async def get_by_gateway_invoice_id(self, gateway_invoice_id: str) -> Optional[Invoice]:
        pass

    @abstractmethod
    async def list_invoices(
        self,
        created_by: str,
        project_id: Optional[str] = None,
        status: Optional[InvoiceStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Invoice]:
        """Owner's invoices, newest first"""
        pass

    @abstractmethod
    async def update(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def delete(self, invoice: Invoice) -> None:
        """Remove the invoice row; its lines must already be gone"""
        pass

    @abstractmethod
    async def upsert_by_gateway_id(
        self,
        gateway_invoice_id: str,
        patch: Dict[str, Any],
        defaults: Dict[str, Any],
    ) -> Tuple[Invoice, bool]:
        """
        Write ``patch`` onto the row for ``gateway_invoice_id``

        A missing row is created from ``defaults`` with ``patch`` on top. Two
        writers racing on the same key end with one row; the loser's insert
        becomes an update. Returns (invoice, created).
        """
        pass

    @abstractmethod
    async def generate_invoice_number(self) -> str:
        """Next INV-YYYYMM-NNNNNN number for the current UTC month"""
        pass
