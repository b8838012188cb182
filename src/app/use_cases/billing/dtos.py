"""Data Transfer Objects for Billing Use Cases

Pydantic models for command inputs and response outputs. Amounts are integer
cents throughout.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

from src.domain.billing_period import BillingPeriod
from src.domain.invoice import Invoice
from src.domain.invoice_line import InvoiceLineItem
from src.domain.pending_invoice_item import PendingInvoiceItem
from src.domain.project import CollectionMethod, Project


class ManualLineDTO(BaseModel):
    """Ad-hoc line added at compose time (negative unit price for credits)"""

    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price_cents: int


class ComposeInvoiceCommandDTO(BaseModel):
    """
    Command DTO for composing a draft invoice

    Used as input to ComposeDraftInvoice use case.
    """

    created_by: str = Field(..., description="Acting user / tenant id")
    billing_period_id: str = Field(..., description="Billing period to invoice")
    pending_item_ids: Optional[List[str]] = Field(
        default=None,
        description="Explicit pending items; all pending items of the period when omitted or empty",
    )
    include_retainer: bool = Field(default=False, description="Add the monthly retainer line")
    manual_lines: List[ManualLineDTO] = Field(default_factory=list)
    collection_method: CollectionMethod = Field(default=CollectionMethod.CHARGE_AUTOMATICALLY)
    due_date: Optional[str] = Field(
        default=None,
        description="YYYY-MM-DD, required for send_invoice",
    )
    memo: Optional[str] = None
    include_processing_fee: Optional[bool] = Field(
        default=None,
        description="Override the configured processing fee line visibility",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "created_by": "user_123",
                "billing_period_id": "5b0c3f4e-0d52-4d0e-8f1b-0a4a3f2f6b11",
                "include_retainer": True,
                "manual_lines": [{"description": "Onboarding", "quantity": "1", "unit_price_cents": 25000}],
                "collection_method": "send_invoice",
                "due_date": "2024-02-15",
            }
        }


class InvoiceLineDTO(BaseModel):
    """DTO for invoice line item"""

    id: str
    line_type: str
    description: str
    quantity: Decimal
    unit_price_cents: int
    amount_cents: int
    sort_order: int
    pending_source_item_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_entity(cls, line: InvoiceLineItem) -> "InvoiceLineDTO":
        return cls(
            id=line.id,
            line_type=line.line_type.value,
            description=line.description,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            amount_cents=line.amount_cents,
            sort_order=line.sort_order,
            pending_source_item_id=line.pending_source_item_id,
            metadata=line.metadata_json,
        )


class InvoiceResponseDTO(BaseModel):
    """
    Response DTO for invoice operations

    Returned by compose, get, list, finalize and mark-paid-offline.
    """

    id: str
    invoice_number: str
    project_id: str
    client_id: Optional[str] = None
    billing_period_id: Optional[str] = None
    gateway_invoice_id: str
    gateway_customer_id: Optional[str] = None
    status: str
    collection_method: str
    payment_method_type: str
    due_date: Optional[date] = None
    subtotal_cents: int
    tax_cents: int
    processing_fee_cents: int
    total_cents: int
    net_amount_cents: int
    hosted_url: Optional[str] = None
    pdf_url: Optional[str] = None
    payment_method_used: Optional[str] = None
    payment_brand: Optional[str] = None
    payment_last4: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    line_items: List[InvoiceLineDTO] = Field(default_factory=list)

    @classmethod
    def from_entity(
        cls, invoice: Invoice, lines: Optional[List[InvoiceLineItem]] = None
    ) -> "InvoiceResponseDTO":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            project_id=invoice.project_id,
            client_id=invoice.client_id,
            billing_period_id=invoice.billing_period_id,
            gateway_invoice_id=invoice.gateway_invoice_id,
            gateway_customer_id=invoice.gateway_customer_id,
            status=invoice.status.value,
            collection_method=invoice.collection_method.value,
            payment_method_type=invoice.payment_method_type.value,
            due_date=invoice.due_date,
            subtotal_cents=invoice.subtotal_cents,
            tax_cents=invoice.tax_cents,
            processing_fee_cents=invoice.processing_fee_cents,
            total_cents=invoice.total_cents,
            net_amount_cents=invoice.net_amount_cents,
            hosted_url=invoice.hosted_url,
            pdf_url=invoice.pdf_url,
            payment_method_used=invoice.payment_method_used,
            payment_brand=invoice.payment_brand,
            payment_last4=invoice.payment_last4,
            metadata=invoice.metadata_json,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            line_items=[InvoiceLineDTO.from_entity(line) for line in lines or []],
        )


class FinalizeInvoiceCommandDTO(BaseModel):
    created_by: str
    invoice_id: str
    send: Optional[bool] = Field(
        default=None,
        description="Email the invoice after finalizing; defaults to true for send_invoice",
    )


class MarkPaidOfflineCommandDTO(BaseModel):
    """
    Command DTO for recording an invoice paid outside the gateway
    (check, wire, cash)
    """

    created_by: str
    invoice_id: str
    amount_received_cents: Optional[int] = Field(
        default=None,
        ge=0,
        description="Overrides net_amount_cents; defaults to the invoice total",
    )
    paid_on: Optional[date] = None
    notes: Optional[str] = None


class AddInvoiceLineCommandDTO(BaseModel):
    """Command DTO for appending a manual line to a draft invoice"""

    created_by: str
    invoice_id: str
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price_cents: int = Field(..., description="Negative for credits")


class DeleteDraftInvoiceCommandDTO(BaseModel):
    created_by: str
    invoice_id: str


class DeletedInvoiceResponseDTO(BaseModel):
    invoice_id: str
    invoice_number: str
    gateway_invoice_id: str
    reverted_item_count: int = Field(description="Pending items returned to the queue")


class CreateBillingPeriodCommandDTO(BaseModel):
    created_by: str
    project_id: str
    client_id: Optional[str] = None
    period_start: date
    period_end: date
    notes: Optional[str] = None


class BillingPeriodResponseDTO(BaseModel):
    id: str
    project_id: str
    client_id: Optional[str] = None
    period_start: date
    period_end: date
    status: str
    notes: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, period: BillingPeriod) -> "BillingPeriodResponseDTO":
        return cls(
            id=period.id,
            project_id=period.project_id,
            client_id=period.client_id,
            period_start=period.period_start,
            period_end=period.period_end,
            status=period.status.value,
            notes=period.notes,
            created_at=period.created_at,
        )


class ImportUsageCommandDTO(BaseModel):
    """
    Command DTO for importing normalized usage rows into a billing period

    Rows stay loosely typed so invalid rows can be skipped with a warning
    instead of rejecting the whole batch.
    """

    created_by: str
    billing_period_id: str
    metric_type: str = Field(default="ai_usage", min_length=1)
    description: Optional[str] = None
    rows: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "created_by": "user_123",
                "billing_period_id": "5b0c3f4e-0d52-4d0e-8f1b-0a4a3f2f6b11",
                "metric_type": "ai_usage",
                "rows": [
                    {"date": "2024-01-03", "quantity": 1200, "unit_price": "0.002", "total_cost": "2.40"},
                    {"date": "2024-01-04", "quantity": 800, "unit_price": "0.002", "total_tokens": 800},
                ],
            }
        }


class UsageImportResponseDTO(BaseModel):
    usage_event_id: str
    pending_item_id: str
    billing_period_id: str
    rows_imported: int
    rows_skipped: int
    total_cents: int
    total_tokens: int
    warnings: List[str] = Field(default_factory=list)


class CreatePendingItemCommandDTO(BaseModel):
    created_by: str
    project_id: str
    client_id: Optional[str] = None
    source_type: str = Field(default="manual", description="manual or task")
    source_ref_id: Optional[str] = None
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price_cents: int = Field(..., ge=0)
    billing_period_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PendingItemResponseDTO(BaseModel):
    id: str
    project_id: str
    client_id: Optional[str] = None
    source_type: str
    source_ref_id: Optional[str] = None
    description: str
    quantity: Decimal
    unit_price_cents: int
    amount_cents: int
    status: str
    billed_invoice_id: Optional[str] = None
    billed_invoice_line_item_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, item: PendingInvoiceItem) -> "PendingItemResponseDTO":
        return cls(
            id=item.id,
            project_id=item.project_id,
            client_id=item.client_id,
            source_type=item.source_type.value,
            source_ref_id=item.source_ref_id,
            description=item.description,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            amount_cents=item.amount_cents,
            status=item.status.value,
            billed_invoice_id=item.billed_invoice_id,
            billed_invoice_line_item_id=item.billed_invoice_line_item_id,
            metadata=item.metadata_json,
            created_at=item.created_at,
        )


class UpdateBillingProfileCommandDTO(BaseModel):
    """
    Partial billing profile update

    Only fields present in the request are applied; billing_anchor_day may be
    explicitly set to null to stop automatic sweeps.
    """

    created_by: str
    project_id: str
    payment_method_type: Optional[str] = None
    auto_pay_enabled: Optional[bool] = None
    subscription_enabled: Optional[bool] = None
    base_retainer_cents: Optional[int] = None
    ach_discount_cents: Optional[int] = None
    billing_anchor_day: Optional[int] = None
    billing_auto_finalize: Optional[bool] = None
    billing_default_collection_method: Optional[str] = None
    gateway_subscription_id: Optional[str] = None


class BillingProfileResponseDTO(BaseModel):
    project_id: str
    name: str
    client_id: Optional[str] = None
    payment_method_type: str
    auto_pay_enabled: bool
    subscription_enabled: bool
    base_retainer_cents: int
    ach_discount_cents: int
    billing_anchor_day: Optional[int] = None
    billing_auto_finalize: bool
    billing_default_collection_method: str
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None
    updated_at: datetime

    @classmethod
    def from_entity(cls, project: Project) -> "BillingProfileResponseDTO":
        return cls(
            project_id=project.id,
            name=project.name,
            client_id=project.client_id,
            payment_method_type=project.payment_method_type.value,
            auto_pay_enabled=project.auto_pay_enabled,
            subscription_enabled=project.subscription_enabled,
            base_retainer_cents=project.base_retainer_cents,
            ach_discount_cents=project.ach_discount_cents,
            billing_anchor_day=project.billing_anchor_day,
            billing_auto_finalize=project.billing_auto_finalize,
            billing_default_collection_method=project.billing_default_collection_method.value,
            gateway_customer_id=project.gateway_customer_id,
            gateway_subscription_id=project.gateway_subscription_id,
            updated_at=project.updated_at,
        )


class SweepProjectResultDTO(BaseModel):
    project_id: str
    status: str = Field(..., description="created, skipped or error")
    invoice_id: Optional[str] = None
    finalized: bool = False
    reason: Optional[str] = None
    message: Optional[str] = None


class SweepResultDTO(BaseModel):
    run_date: date
    processed: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    results: List[SweepProjectResultDTO] = Field(default_factory=list)


class WebhookAckDTO(BaseModel):
    """Acknowledgement returned to the gateway for every verified event"""

    received: bool = True
    ok: bool = True
    event_type: Optional[str] = None
    action: Optional[str] = None
    message: Optional[str] = None


class ProformaInvoiceResponseDTO(BaseModel):
    """
    Response DTO for proforma invoice generation

    Contains invoice details and PDF as base64 encoded string.
    """

    invoice_id: str
    invoice_number: str
    status: str
    subtotal_cents: int
    processing_fee_cents: int
    total_cents: int
    line_items: List[InvoiceLineDTO]
    pdf_base64: str = Field(..., description="Base64 encoded PDF document")
    generated_at: datetime
