"""Billing Period Domain Entity

Operator-defined date range used to scope usage imports and invoices.
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Date, Text
from src.domain.base import BaseModel, generate_uuid


class BillingPeriodStatus(str, Enum):
    """Billing period status types"""
    DRAFT = "draft"
    FINALIZED = "finalized"
    PAID = "paid"


class BillingPeriod(BaseModel, table=True):
    """
    Billing Period - Date range for a project's billing cycle

    Domain Rules:
    - period_end >= period_start
    - Never deleted once an invoice references it
    """

    __tablename__ = "billing_periods"
    __table_args__ = (
        CheckConstraint('period_end >= period_start', name='billing_periods_valid_range'),
        Index('ix_billing_periods_project', 'project_id', 'period_start'),
        Index('ix_billing_periods_created_by', 'created_by'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Billing period identifier (UUID)"
    )

    project_id: str = Field(foreign_key="projects.id", description="Project this period bills")
    client_id: Optional[str] = Field(default=None, foreign_key="clients.id")

    period_start: date = Field(sa_column=Column(Date, nullable=False))
    period_end: date = Field(sa_column=Column(Date, nullable=False))

    status: BillingPeriodStatus = Field(default=BillingPeriodStatus.DRAFT)

    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    created_by: str = Field(description="Owning user / tenant id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
