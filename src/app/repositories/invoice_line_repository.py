"""Invoice line persistence contract"""

from abc import ABC, abstractmethod
from typing import List
from src.domain.invoice_line import InvoiceLineItem


class InvoiceLineRepository(ABC):
    @abstractmethod
    async def get_by_invoice_id(self, invoice_id: str) -> List[InvoiceLineItem]:
        """Lines of one invoice by sort_order"""
        pass

    @abstractmethod
    async def create_many(self, lines: List[InvoiceLineItem]) -> List[InvoiceLineItem]:
        """Insert the lines in one flush; ids are available on return"""
        pass

    @abstractmethod
    async def delete_by_invoice_id(self, invoice_id: str) -> int:
        """Remove every line of one invoice; returns the number removed"""
        pass
