from .project_repository import SqlAlchemyProjectRepository
from .client_repository import SqlAlchemyClientRepository
from .billing_period_repository import SqlAlchemyBillingPeriodRepository
from .pending_invoice_item_repository import SqlAlchemyPendingInvoiceItemRepository
from .usage_event_repository import SqlAlchemyUsageEventRepository
from .invoice_repository import SqlAlchemyInvoiceRepository
from .invoice_line_repository import SqlAlchemyInvoiceLineRepository
from .payment_repository import SqlAlchemyPaymentRepository

__all__ = [
    "SqlAlchemyProjectRepository",
    "SqlAlchemyClientRepository",
    "SqlAlchemyBillingPeriodRepository",
    "SqlAlchemyPendingInvoiceItemRepository",
    "SqlAlchemyUsageEventRepository",
    "SqlAlchemyInvoiceRepository",
    "SqlAlchemyInvoiceLineRepository",
    "SqlAlchemyPaymentRepository",
]
