"""Proforma rendering contract

The use case flattens an invoice into a ProformaDocument; renderers only
lay it out.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional


@dataclass
class ProformaRow:
    description: str
    quantity: Decimal
    unit_price_cents: int
    amount_cents: int


@dataclass
class ProformaDocument:
    """Everything printed on a proforma, already resolved to display values"""

    issuer_name: str
    issuer_address: str
    invoice_number: str
    status: str
    collection_method: str
    issued_at: datetime
    due_date: Optional[date]
    bill_to: List[str]
    rows: List[ProformaRow] = field(default_factory=list)
    subtotal_cents: int = 0
    processing_fee_cents: int = 0
    tax_cents: int = 0
    total_cents: int = 0


class PdfService(ABC):
    @abstractmethod
    def render_proforma(self, document: ProformaDocument) -> bytes:
        """Render the document as PDF bytes"""
        pass
