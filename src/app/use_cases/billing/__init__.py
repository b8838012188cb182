"""Billing domain use cases"""
from .settings import BillingSettings
from .pending_item_ledger import PendingItemLedger
from .compose_invoice import ComposeDraftInvoice
from .finalize_invoice import FinalizeInvoice
from .mark_invoice_paid_offline import MarkInvoicePaidOffline
from .list_invoices import ListInvoices
from .get_invoice import GetInvoice
from .generate_proforma import GenerateProforma
from .reconcile_gateway_event import ReconcileGatewayEvent
from .run_billing_sweep import RunBillingSweep, SweepUnit
from .create_billing_period import CreateBillingPeriod
from .list_billing_periods import ListBillingPeriods
from .get_billing_period import GetBillingPeriod
from .import_usage import ImportUsage
from .create_pending_item import CreatePendingItem
from .list_pending_items import ListPendingItems
from .void_pending_item import VoidPendingItem
from .update_billing_profile import UpdateBillingProfile
from .dtos import (
    ManualLineDTO,
    ComposeInvoiceCommandDTO,
    InvoiceLineDTO,
    InvoiceResponseDTO,
    FinalizeInvoiceCommandDTO,
    MarkPaidOfflineCommandDTO,
    CreateBillingPeriodCommandDTO,
    BillingPeriodResponseDTO,
    ImportUsageCommandDTO,
    UsageImportResponseDTO,
    CreatePendingItemCommandDTO,
    PendingItemResponseDTO,
    UpdateBillingProfileCommandDTO,
    BillingProfileResponseDTO,
    SweepProjectResultDTO,
    SweepResultDTO,
    WebhookAckDTO,
    ProformaInvoiceResponseDTO,
)

__all__ = [
    "BillingSettings",
    "PendingItemLedger",
    "ComposeDraftInvoice",
    "FinalizeInvoice",
    "MarkInvoicePaidOffline",
    "ListInvoices",
    "GetInvoice",
    "GenerateProforma",
    "ReconcileGatewayEvent",
    "RunBillingSweep",
    "SweepUnit",
    "CreateBillingPeriod",
    "ListBillingPeriods",
    "GetBillingPeriod",
    "ImportUsage",
    "CreatePendingItem",
    "ListPendingItems",
    "VoidPendingItem",
    "UpdateBillingProfile",
    "ManualLineDTO",
    "ComposeInvoiceCommandDTO",
    "InvoiceLineDTO",
    "InvoiceResponseDTO",
    "FinalizeInvoiceCommandDTO",
    "MarkPaidOfflineCommandDTO",
    "CreateBillingPeriodCommandDTO",
    "BillingPeriodResponseDTO",
    "ImportUsageCommandDTO",
    "UsageImportResponseDTO",
    "CreatePendingItemCommandDTO",
    "PendingItemResponseDTO",
    "UpdateBillingProfileCommandDTO",
    "BillingProfileResponseDTO",
    "SweepProjectResultDTO",
    "SweepResultDTO",
    "WebhookAckDTO",
    "ProformaInvoiceResponseDTO",
]
