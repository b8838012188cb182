"""Request schemas for Billing API

Pydantic models for validating incoming HTTP requests. The acting user comes
from the X-User-Id header, never from the body.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, field_validator

from src.domain.project import CollectionMethod


class CreateBillingPeriodRequestSchema(BaseModel):
    """
    Request schema for opening a billing period

    Used for POST /billing/billing-periods endpoint.
    """

    project_id: str = Field(..., min_length=1, description="Project to bill")
    client_id: Optional[str] = Field(
        default=None,
        description="Client override; must match the project's client"
    )
    period_start: date = Field(..., description="First day of the period (YYYY-MM-DD)")
    period_end: date = Field(..., description="Last day of the period (YYYY-MM-DD)")
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "project_id": "3f1c2d4e-8a9b-4c0d-9e1f-2a3b4c5d6e7f",
                "period_start": "2024-01-01",
                "period_end": "2024-01-31",
            }
        }


class UsageImportRequestSchema(BaseModel):
    """
    Request schema for a usage import batch

    Used for POST /billing/billing-periods/{period_id}/usage-imports endpoint.
    Amounts in rows are dollars; invalid rows are skipped with a warning.
    """

    metric_type: str = Field(default="ai_usage", min_length=1)
    description: Optional[str] = None
    rows: List[Dict[str, Any]] = Field(
        ...,
        min_length=1,
        description="Normalized rows: date, quantity, unit_price, total_cost?, total_tokens?"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "metric_type": "ai_usage",
                "rows": [
                    {"date": "2024-01-03", "quantity": 1200, "unit_price": "0.002", "total_cost": "2.40"},
                ],
            }
        }


class CreatePendingItemRequestSchema(BaseModel):
    """
    Request schema for queueing a manual or task item

    Used for POST /billing/pending-items endpoint.
    """

    project_id: str = Field(..., min_length=1)
    client_id: Optional[str] = None
    source_type: str = Field(default="manual", description="manual or task")
    source_ref_id: Optional[str] = None
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price_cents: int = Field(..., ge=0, description="Unit price in cents")
    billing_period_id: Optional[str] = Field(
        default=None,
        description="Tag the item for one billing period"
    )
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('source_type')
    @classmethod
    def validate_source_type(cls, v):
        """Usage items are only created by usage imports"""
        if v not in ("manual", "task"):
            raise ValueError("source_type must be 'manual' or 'task'")
        return v


class ManualLineSchema(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price_cents: int = Field(..., description="Negative for credits")


class ComposeInvoiceRequestSchema(BaseModel):
    """
    Request schema for composing a draft invoice

    Used for POST /billing/invoices/draft endpoint.
    """

    billing_period_id: str = Field(..., min_length=1)
    pending_item_ids: Optional[List[str]] = Field(
        default=None,
        description="Explicit pending items; every pending item of the period when omitted or empty"
    )
    include_retainer: bool = False
    manual_lines: List[ManualLineSchema] = Field(default_factory=list)
    collection_method: CollectionMethod = CollectionMethod.CHARGE_AUTOMATICALLY
    due_date: Optional[str] = Field(
        default=None,
        description="YYYY-MM-DD, required for send_invoice"
    )
    memo: Optional[str] = None
    include_processing_fee: Optional[bool] = None

    class Config:
        json_schema_extra = {
            "example": {
                "billing_period_id": "5b0c3f4e-0d52-4d0e-8f1b-0a4a3f2f6b11",
                "include_retainer": True,
                "collection_method": "send_invoice",
                "due_date": "2024-02-15",
            }
        }


class FinalizeInvoiceRequestSchema(BaseModel):
    send: Optional[bool] = Field(
        default=None,
        description="Email the invoice after finalizing; defaults to true for send_invoice"
    )


class MarkPaidOfflineRequestSchema(BaseModel):
    """
    Request schema for recording an offline payment

    Used for POST /billing/invoices/{invoice_id}/mark-paid-offline endpoint.
    """

    amount_received_cents: Optional[int] = Field(default=None, ge=0)
    paid_on: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class AddInvoiceLineRequestSchema(BaseModel):
    """
    Request schema for adding a manual line to a draft invoice

    Used for POST /billing/invoices/{invoice_id}/line-items endpoint.
    """

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price_cents: int = Field(..., description="Negative for credits")


class UpdateBillingProfileRequestSchema(BaseModel):
    """
    Request schema for a partial billing profile update

    Used for PATCH /billing/projects/{project_id}/billing-profile endpoint.
    Omitted fields are left untouched.
    """

    payment_method_type: Optional[str] = None
    auto_pay_enabled: Optional[bool] = None
    subscription_enabled: Optional[bool] = None
    base_retainer_cents: Optional[int] = None
    ach_discount_cents: Optional[int] = None
    billing_anchor_day: Optional[int] = None
    billing_auto_finalize: Optional[bool] = None
    billing_default_collection_method: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "payment_method_type": "ach",
                "auto_pay_enabled": True,
                "billing_anchor_day": 1,
            }
        }
