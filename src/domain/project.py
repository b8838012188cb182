"""Project Domain Entity

Carries the project's billing profile: payment method policy, retainer,
anchor day and the gateway customer/subscription references.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Integer, SmallInteger, String
from src.domain.base import BaseModel, generate_uuid


class PaymentMethodType(str, Enum):
    """How a project pays its invoices"""
    CARD = "card"
    ACH = "ach"
    OFFLINE = "offline"


class CollectionMethod(str, Enum):
    """Gateway collection method"""
    CHARGE_AUTOMATICALLY = "charge_automatically"
    SEND_INVOICE = "send_invoice"


class Project(BaseModel, table=True):
    """
    Project - Billable project and its billing profile

    Domain Rules:
    - base_retainer_cents and ach_discount_cents are never negative
    - billing_anchor_day is within 1..28 or unset (no automatic sweep)
    - Billing profile changes only through UpdateBillingProfile
    """

    __tablename__ = "projects"
    __table_args__ = (
        CheckConstraint('base_retainer_cents >= 0', name='base_retainer_non_negative'),
        CheckConstraint('ach_discount_cents >= 0', name='ach_discount_non_negative'),
        CheckConstraint(
            'billing_anchor_day IS NULL OR (billing_anchor_day BETWEEN 1 AND 28)',
            name='billing_anchor_day_range',
        ),
        Index('ix_projects_created_by', 'created_by'),
        Index('ix_projects_billing_anchor_day', 'billing_anchor_day'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Project identifier (UUID)"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Project name"
    )

    client_id: Optional[str] = Field(
        default=None,
        foreign_key="clients.id",
        description="Owning client"
    )

    payment_method_type: PaymentMethodType = Field(
        default=PaymentMethodType.CARD,
        description="Preferred payment method (card, ach, offline)"
    )

    auto_pay_enabled: bool = Field(default=False, description="Auto-charge stored payment method")
    subscription_enabled: bool = Field(default=False, description="Project bills a monthly retainer")

    base_retainer_cents: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Monthly retainer in cents"
    )

    ach_discount_cents: int = Field(
        default=500,
        sa_column=Column(Integer, nullable=False, default=500),
        description="ACH auto-pay discount in cents"
    )

    billing_anchor_day: Optional[int] = Field(
        default=None,
        sa_column=Column(SmallInteger, nullable=True),
        description="Day of month (1-28) the billing sweep runs for this project"
    )

    billing_auto_finalize: bool = Field(
        default=True,
        description="Finalize sweep invoices immediately"
    )

    billing_default_collection_method: CollectionMethod = Field(
        default=CollectionMethod.CHARGE_AUTOMATICALLY,
        description="Preferred collection method"
    )

    gateway_customer_id: Optional[str] = Field(default=None, description="Gateway customer id")
    gateway_subscription_id: Optional[str] = Field(default=None, description="Gateway subscription id")

    created_by: str = Field(description="Owning user / tenant id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
