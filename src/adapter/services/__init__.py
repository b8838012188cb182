from .unit_of_work import SqlAlchemyUnitOfWork
from .notification_service import (
    LoggingNotificationService,
    WebhookNotificationService,
    FanOutNotificationService,
    create_notification_service,
)
from .pdf_service import ReportLabPdfService
from .stripe_gateway import StripePaymentGateway

__all__ = [
    "SqlAlchemyUnitOfWork",
    "LoggingNotificationService",
    "WebhookNotificationService",
    "FanOutNotificationService",
    "create_notification_service",
    "ReportLabPdfService",
    "StripePaymentGateway",
]
