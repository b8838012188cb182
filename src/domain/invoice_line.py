"""Invoice Line Item Domain Entity

Tracks individual line items within an invoice.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, Integer, JSON, Numeric, String, Text
from src.domain.base import BaseModel, generate_uuid


class LineType(str, Enum):
    """Invoice line categories"""
    BASE_SUBSCRIPTION = "base_subscription"
    USAGE = "usage"
    PROJECT = "project"
    INVOICE_ITEM = "invoice_item"
    SUBSCRIPTION = "subscription"
    PROCESSING_FEE = "processing_fee"


class InvoiceLineItem(BaseModel, table=True):
    """
    Invoice Line Item - Individual line within an invoice

    Domain Rules:
    - Each line item belongs to exactly one invoice and is deleted with it
    - amount_cents = round(quantity * unit_price_cents); negative for credits
    - pending_source_item_id is a soft reference to the pending item it bills
    """

    __tablename__ = "invoice_line_items"
    __table_args__ = (
        Index('ix_invoice_line_items_invoice', 'invoice_id', 'sort_order'),
        Index('ix_invoice_line_items_pending_source', 'pending_source_item_id'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Line item identifier (UUID)"
    )

    invoice_id: str = Field(
        sa_column=Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        description="Owning invoice"
    )

    line_type: LineType = Field(description="Line category")

    description: str = Field(sa_column=Column(Text, nullable=False))

    quantity: Decimal = Field(
        default=Decimal("1"),
        sa_column=Column(Numeric(18, 4), nullable=False, default=1),
    )

    unit_price_cents: int = Field(sa_column=Column(Integer, nullable=False))
    amount_cents: int = Field(sa_column=Column(Integer, nullable=False))
    sort_order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    metadata_json: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True),
    )

    pending_source_item_id: Optional[str] = Field(default=None)

    created_by: str = Field(description="Owning user / tenant id")

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Line item creation timestamp"
    )
