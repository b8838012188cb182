"""Webhook API Routes

Receives payment gateway events and reconciles local invoices and payments.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from src.libs.result import Error
from src.app.errors import ValidationError, to_error
from src.app.use_cases.billing.dtos import WebhookAckDTO
from src.app.use_cases.billing.reconcile_gateway_event import ReconcileGatewayEvent
from src.app.use_cases.billing.settings import BillingSettings
from src.app.services.payment_gateway import PaymentGateway
from src.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from src.adapter.repositories.invoice_line_repository import SqlAlchemyInvoiceLineRepository
from src.adapter.repositories.payment_repository import SqlAlchemyPaymentRepository
from src.adapter.repositories.project_repository import SqlAlchemyProjectRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import build_pending_item_ledger, get_billing_settings, get_payment_gateway, get_session
from src.api.error import ClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe", response_model=WebhookAckDTO)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: BillingSettings = Depends(get_billing_settings),
):
    """
    Verify and reconcile a Stripe event.

    Every verified event is acknowledged, including events whose handling
    failed (`ok: false`) and event types the service does not track.

    **Returns:**
    - 200: Event acknowledged
    - 400: Missing or invalid Stripe-Signature
    - 500: Webhook secret is not configured
    """
    if not settings.stripe_webhook_secret:
        raise ClientError(
            Error(code="INTERNAL_ERROR", message="Webhook secret is not configured."),
            status_code=500,
        )

    payload = await request.body()
    try:
        event = gateway.verify_webhook(payload, stripe_signature or "")
    except ValidationError as e:
        logger.warning(f"Rejected webhook: {e.message}")
        raise ClientError(to_error(e), status_code=400)

    use_case = ReconcileGatewayEvent(
        uow=SqlAlchemyUnitOfWork(session),
        invoice_repo=SqlAlchemyInvoiceRepository(session),
        invoice_line_repo=SqlAlchemyInvoiceLineRepository(session),
        project_repo=SqlAlchemyProjectRepository(session),
        payment_repo=SqlAlchemyPaymentRepository(session),
        ledger=build_pending_item_ledger(session),
        gateway=gateway,
    )
    result = await use_case.execute(event)

    if result.is_err():
        raise ClientError(result.error)
    return result.value
