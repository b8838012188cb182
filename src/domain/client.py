"""Client Domain Entity

Billing contact for one or more projects. Owns the gateway customer id.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String
from src.domain.base import BaseModel, generate_uuid


class Client(BaseModel, table=True):
    """
    Client - Billable customer record

    Domain Rules:
    - gateway_customer_id is written back lazily by the invoice composer
    - Scoped to its owner through created_by
    """

    __tablename__ = "clients"
    __table_args__ = (
        Index('ix_clients_created_by', 'created_by'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Client identifier (UUID)"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Client display name"
    )

    company_name: Optional[str] = Field(default=None, description="Company name")
    email: Optional[str] = Field(default=None, description="Billing email")
    phone: Optional[str] = Field(default=None, description="Billing phone")

    gateway_customer_id: Optional[str] = Field(
        default=None,
        description="Payment gateway customer id (e.g. cus_123)"
    )

    created_by: str = Field(description="Owning user / tenant id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def display_name(self) -> Optional[str]:
        for candidate in (self.name, self.company_name):
            if candidate and candidate.strip():
                return candidate
        return None
