"""Usage Event Domain Entity

Aggregate row written once per usage import batch.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Integer, JSON, Numeric, String, Text
from src.domain.base import BaseModel, generate_uuid


class UsageEvent(BaseModel, table=True):
    """
    Usage Event - Aggregated metered usage for a billing period

    pending_item_id is set once the event has been queued for billing.
    """

    __tablename__ = "usage_events"
    __table_args__ = (
        Index('ix_usage_events_project_date', 'project_id', 'event_date'),
        Index('ix_usage_events_billing_period', 'billing_period_id'),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    project_id: str = Field(foreign_key="projects.id")
    billing_period_id: Optional[str] = Field(default=None, foreign_key="billing_periods.id")

    event_date: date = Field(sa_column=Column(Date, nullable=False))
    metric_type: str = Field(sa_column=Column(String(100), nullable=False))

    quantity: Decimal = Field(sa_column=Column(Numeric(18, 4), nullable=False))
    unit_price_cents: int = Field(sa_column=Column(Integer, nullable=False))

    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    metadata_json: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True),
    )

    pending_item_id: Optional[str] = Field(default=None)

    created_by: str = Field(description="Owning user / tenant id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
