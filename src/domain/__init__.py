from .base import BaseModel, generate_uuid
from .client import Client
from .project import Project, PaymentMethodType, CollectionMethod
from .billing_period import BillingPeriod, BillingPeriodStatus
from .pending_invoice_item import PendingInvoiceItem, PendingItemSourceType, PendingItemStatus
from .usage_event import UsageEvent
from .invoice import Invoice, InvoiceStatus
from .invoice_line import InvoiceLineItem, LineType
from .payment import Payment, PaymentStatus

__all__ = [
    "BaseModel",
    "generate_uuid",
    "Client",
    "Project",
    "PaymentMethodType",
    "CollectionMethod",
    "BillingPeriod",
    "BillingPeriodStatus",
    "PendingInvoiceItem",
    "PendingItemSourceType",
    "PendingItemStatus",
    "UsageEvent",
    "Invoice",
    "InvoiceStatus",
    "InvoiceLineItem",
    "LineType",
    "Payment",
    "PaymentStatus",
]
