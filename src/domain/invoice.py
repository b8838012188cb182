"""Invoice Domain Entity

Local mirror of a gateway invoice.
"""

from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Integer, JSON, String
from src.domain.base import BaseModel, generate_uuid
from src.domain.project import CollectionMethod, PaymentMethodType


class InvoiceStatus(str, Enum):
    """Invoice status types"""
    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    VOID = "void"

    @classmethod
    def from_gateway(cls, value: Optional[str]) -> "InvoiceStatus":
        """Gateway "uncollectible" and unknown statuses stay open locally"""
        return GATEWAY_STATUS_MAP.get(value, cls.OPEN)


GATEWAY_STATUS_MAP = {
    "draft": InvoiceStatus.DRAFT,
    "open": InvoiceStatus.OPEN,
    "paid": InvoiceStatus.PAID,
    "void": InvoiceStatus.VOID,
    "uncollectible": InvoiceStatus.OPEN,
}


class Invoice(BaseModel, table=True):
    """
    Invoice - Datastore mirror of a gateway invoice

    Domain Rules:
    - invoice_number is unique
    - At most one row per gateway_invoice_id
    - Status transitions: draft -> open -> paid | void, or draft -> void
    - Created as draft by the composer, or upserted by the reconciler when a
      gateway event arrives first
    """

    __tablename__ = "invoices"
    __table_args__ = (
        Index('ix_invoices_project', 'project_id', 'created_at'),
        Index('ix_invoices_created_by', 'created_by', 'created_at'),
        Index('ix_invoices_status', 'status'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Invoice identifier (UUID)"
    )

    invoice_number: str = Field(
        sa_column=Column(String(50), nullable=False, unique=True),
        description="Unique invoice number (e.g., INV-202401-000001)"
    )

    project_id: str = Field(foreign_key="projects.id")
    client_id: Optional[str] = Field(default=None, foreign_key="clients.id")
    billing_period_id: Optional[str] = Field(default=None, foreign_key="billing_periods.id")

    gateway_invoice_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True),
        description="Gateway invoice id (in_...)"
    )
    gateway_customer_id: Optional[str] = Field(default=None)
    gateway_subscription_id: Optional[str] = Field(default=None)

    subtotal_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    tax_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    processing_fee_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    total_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    net_amount_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    payment_method_type: PaymentMethodType = Field(default=PaymentMethodType.CARD)
    collection_method: CollectionMethod = Field(default=CollectionMethod.CHARGE_AUTOMATICALLY)

    due_date: Optional[date] = Field(default=None, sa_column=Column(Date, nullable=True))

    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT)

    hosted_url: Optional[str] = Field(default=None)
    pdf_url: Optional[str] = Field(default=None)

    payment_method_used: Optional[str] = Field(default=None)
    payment_brand: Optional[str] = Field(default=None)
    payment_last4: Optional[str] = Field(default=None)

    metadata_json: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True),
    )

    created_by: str = Field(description="Owning user / tenant id")

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Invoice creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "7f0c8a5e-2b1d-4c55-9f3e-0a3f5b6d1c22",
                "invoice_number": "INV-202401-000001",
                "project_id": "b3c1...",
                "gateway_invoice_id": "in_1Nabc",
                "status": "draft",
                "subtotal_cents": 10000,
                "processing_fee_cents": 320,
                "total_cents": 10320,
                "collection_method": "charge_automatically",
            }
        }
