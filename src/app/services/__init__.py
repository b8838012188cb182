from .unit_of_work import UnitOfWork
from .notification_service import NotificationService
from .payment_gateway import PaymentGateway
from .pdf_service import PdfService

__all__ = [
    "UnitOfWork",
    "NotificationService",
    "PaymentGateway",
    "PdfService",
]
