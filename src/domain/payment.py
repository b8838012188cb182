"""Payment Domain Entity

One-off checkout payments, separate from invoices.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import Integer
from src.domain.base import BaseModel, generate_uuid


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Payment(BaseModel, table=True):
    """
    Payment - Checkout session payment

    Updated by the gateway reconciler when the checkout completes.
    """

    __tablename__ = "payments"

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    gateway_checkout_session_id: str = Field(
        unique=True,
        index=True,
        description="Gateway checkout session id (cs_...)"
    )

    project_id: Optional[str] = Field(default=None, foreign_key="projects.id")
    client_id: Optional[str] = Field(default=None, foreign_key="clients.id")

    amount_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)

    payment_method_used: Optional[str] = Field(default=None)
    payment_brand: Optional[str] = Field(default=None)
    payment_last4: Optional[str] = Field(default=None)

    created_by: str = Field(description="Owning user / tenant id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
