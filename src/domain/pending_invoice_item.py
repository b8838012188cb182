"""Pending Invoice Item Domain Entity

Queue of billable facts (usage, task, manual) awaiting an invoice.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Integer, JSON, Numeric, Text
from src.domain.base import BaseModel, generate_uuid


class PendingItemSourceType(str, Enum):
    """Where a pending item came from"""
    USAGE = "usage"
    TASK = "task"
    MANUAL = "manual"


class PendingItemStatus(str, Enum):
    """Pending item lifecycle"""
    PENDING = "pending"
    BILLED = "billed"
    VOIDED = "voided"


def compute_amount_cents(quantity: Decimal, unit_price_cents: int) -> int:
    """round(quantity * unit_price_cents), halves rounded up"""
    amount = Decimal(str(quantity)) * Decimal(unit_price_cents)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PendingInvoiceItem(BaseModel, table=True):
    """
    Pending Invoice Item - Unit of billable work not yet invoiced

    Domain Rules:
    - amount_cents = round(quantity * unit_price_cents)
    - pending -> billed exactly once, when attached to a persisted line item
    - billed -> pending only when the invoice is voided at the gateway
    - billed_invoice_id / billed_invoice_line_item_id are soft references
      (no cascade) so a voided invoice never destroys the billable record
    """

    __tablename__ = "pending_invoice_items"
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='pending_quantity_non_negative'),
        CheckConstraint('unit_price_cents >= 0', name='pending_unit_price_non_negative'),
        Index('ix_pending_invoice_items_project_status', 'project_id', 'status', 'created_at'),
        Index('ix_pending_invoice_items_created_by', 'created_by'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Pending item identifier (UUID)"
    )

    project_id: str = Field(foreign_key="projects.id")
    client_id: Optional[str] = Field(default=None, foreign_key="clients.id")

    source_type: PendingItemSourceType = Field(description="usage, task or manual")
    source_ref_id: Optional[str] = Field(default=None, description="Id of the originating record")

    description: str = Field(sa_column=Column(Text, nullable=False))

    quantity: Decimal = Field(
        default=Decimal("1"),
        sa_column=Column(Numeric(18, 4), nullable=False, default=1),
    )

    unit_price_cents: int = Field(sa_column=Column(Integer, nullable=False))
    amount_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    status: PendingItemStatus = Field(default=PendingItemStatus.PENDING)

    billed_invoice_id: Optional[str] = Field(default=None)
    billed_invoice_line_item_id: Optional[str] = Field(default=None)

    metadata_json: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True),
    )

    created_by: str = Field(description="Owning user / tenant id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def billing_period_id(self) -> Optional[str]:
        return (self.metadata_json or {}).get("billing_period_id")
