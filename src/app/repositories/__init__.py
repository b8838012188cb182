from .project_repository import ProjectRepository
from .client_repository import ClientRepository
from .billing_period_repository import BillingPeriodRepository
from .pending_invoice_item_repository import PendingInvoiceItemRepository
from .usage_event_repository import UsageEventRepository
from .invoice_repository import InvoiceRepository
from .invoice_line_repository import InvoiceLineRepository
from .payment_repository import PaymentRepository

__all__ = [
    "ProjectRepository",
    "ClientRepository",
    "BillingPeriodRepository",
    "PendingInvoiceItemRepository",
    "UsageEventRepository",
    "InvoiceRepository",
    "InvoiceLineRepository",
    "PaymentRepository",
]
