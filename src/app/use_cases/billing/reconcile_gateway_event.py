"""ReconcileGatewayEvent Use Case

Applies verified payment gateway webhook events to the local invoice and
payment mirror. Every event is acknowledged; handler failures are logged and
reported with ok=False so the gateway does not retry forever.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from src.libs.result import Result, Return
from src.app.errors import UpstreamGatewayError
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import ChargeDetails, PaymentGateway, PaymentMethodSummary
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.payment_repository import PaymentRepository
from src.app.repositories.project_repository import ProjectRepository
from src.domain.invoice import Invoice, InvoiceStatus
from src.domain.payment import PaymentStatus
from src.domain.project import CollectionMethod, Project
from .pending_item_ledger import PendingItemLedger
from .dtos import WebhookAckDTO

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (InvoiceStatus.PAID, InvoiceStatus.VOID)


def _expandable_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


def _from_unix(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _unix_to_date(value: Any) -> Optional[date]:
    moment = _from_unix(value)
    return moment.date() if moment else None


def _tax_cents(obj: Dict[str, Any]) -> int:
    amounts = obj.get("total_tax_amounts")
    if amounts:
        return sum(entry.get("amount") or 0 for entry in amounts)
    return obj.get("tax") or 0


class ReconcileGatewayEvent:
    """
    Use Case: Reconcile a gateway webhook event

    Handled events:
    - checkout.session.completed: mark the checkout payment paid
    - invoice.finalized: mirror totals, urls and status
    - invoice.paid: mirror totals, capture fee/net and payment method
    - invoice.payment_failed: status open, record the attempt
    - invoice.voided: status void, return billed pending items to the queue

    Unknown events are acknowledged and ignored. Invoices not yet mirrored are
    created, owned by the project resolved from metadata project_id, then the
    gateway subscription, then the gateway customer.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
        project_repo: ProjectRepository,
        payment_repo: PaymentRepository,
        ledger: PendingItemLedger,
        gateway: PaymentGateway,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo
        self.project_repo = project_repo
        self.payment_repo = payment_repo
        self.ledger = ledger
        self.gateway = gateway
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[str]]] = {
            "checkout.session.completed": self._handle_checkout_completed,
            "invoice.finalized": self._handle_invoice_finalized,
            "invoice.paid": self._handle_invoice_paid,
            "invoice.payment_failed": self._handle_invoice_payment_failed,
            "invoice.voided": self._handle_invoice_voided,
        }

    async def execute(self, event: Dict[str, Any]) -> Result[WebhookAckDTO]:
        """
        Execute event reconciliation

        Args:
            event: Verified gateway event as a dict

        Returns:
            Result[WebhookAckDTO]: Always ok; ack.ok is False when handling failed
        """
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        handler = self._handlers.get(event_type)

        if handler is None:
            logger.debug(f"Ignoring gateway event {event_type}")
            return Return.ok(WebhookAckDTO(event_type=event_type, action="ignored"))

        try:
            action = await handler(obj)
            await self.uow.commit()
            logger.info(f"Gateway event {event_type} for {obj.get('id')}: {action}")
            return Return.ok(WebhookAckDTO(event_type=event_type, action=action))
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Gateway event {event_type} for {obj.get('id')} failed (acknowledged): {e}")
            return Return.ok(
                WebhookAckDTO(
                    ok=False,
                    event_type=event_type,
                    action="failed",
                    message="handler_exception",
                )
            )

    async def _handle_checkout_completed(self, session: Dict[str, Any]) -> str:
        payment = await self.payment_repo.get_by_checkout_session_id(session["id"])
        if payment is None:
            logger.warning(f"No payment recorded for checkout session {session['id']}")
            return "payment_not_found"

        summary = PaymentMethodSummary()
        payment_intent_id = _expandable_id(session.get("payment_intent"))
        if payment_intent_id:
            try:
                summary = await self.gateway.retrieve_payment_intent(payment_intent_id)
            except UpstreamGatewayError as e:
                logger.warning(f"Unable to inspect payment intent {payment_intent_id}: {e.message}")

        payment.status = PaymentStatus.PAID
        payment.payment_method_used = summary.method
        payment.payment_brand = summary.brand
        payment.payment_last4 = summary.last4
        if session.get("amount_total") is not None:
            payment.amount_cents = session["amount_total"]
        await self.payment_repo.update(payment)
        return "payment_paid"

    async def _handle_invoice_finalized(self, obj: Dict[str, Any]) -> str:
        existing = await self.invoice_repo.get_by_gateway_invoice_id(obj["id"])
        patch = self._totals_patch(obj)
        if existing is None or existing.status not in TERMINAL_STATUSES:
            patch["status"] = InvoiceStatus.from_gateway(obj.get("status"))
        patch["metadata_json"] = self._merge_metadata(existing, obj, {})

        invoice = await self._upsert(obj, existing, patch)
        return "invoice_finalized" if invoice else "project_not_found"

    async def _handle_invoice_paid(self, obj: Dict[str, Any]) -> str:
        existing = await self.invoice_repo.get_by_gateway_invoice_id(obj["id"])
        amount_paid = obj.get("amount_paid")
        if amount_paid is None:
            amount_paid = obj.get("amount_due") or 0

        charge = ChargeDetails(net_cents=amount_paid)
        charge_id = _expandable_id(obj.get("charge"))
        if charge_id:
            try:
                charge = await self.gateway.retrieve_charge(charge_id)
            except UpstreamGatewayError as e:
                logger.warning(f"Unable to load balance transaction for charge {charge_id}: {e.message}")

        paid_at = _from_unix((obj.get("status_transitions") or {}).get("paid_at"))
        previous_paid_at = ((existing.metadata_json or {}) if existing else {}).get("paid_at")
        if previous_paid_at:
            paid_at_value = previous_paid_at
        else:
            paid_at_value = (paid_at or datetime.now(timezone.utc)).isoformat()

        subtotal = obj.get("subtotal")
        patch = {
            "status": InvoiceStatus.PAID,
            "subtotal_cents": subtotal if subtotal is not None else amount_paid,
            "tax_cents": _tax_cents(obj),
            "processing_fee_cents": charge.fee_cents,
            "total_cents": amount_paid,
            "net_amount_cents": charge.net_cents if charge.net_cents is not None else amount_paid,
            "hosted_url": obj.get("hosted_invoice_url"),
            "pdf_url": obj.get("invoice_pdf"),
            "payment_method_used": charge.payment_method.method,
            "payment_brand": charge.payment_method.brand,
            "payment_last4": charge.payment_method.last4,
            "metadata_json": self._merge_metadata(
                existing, obj, {"gateway_invoice_id": obj["id"], "paid_at": paid_at_value}
            ),
        }

        invoice = await self._upsert(obj, existing, patch)
        return "invoice_paid" if invoice else "project_not_found"

    async def _handle_invoice_payment_failed(self, obj: Dict[str, Any]) -> str:
        existing = await self.invoice_repo.get_by_gateway_invoice_id(obj["id"])
        patch = {}
        if existing is None or existing.status not in TERMINAL_STATUSES:
            patch["status"] = InvoiceStatus.OPEN
        patch["metadata_json"] = self._merge_metadata(
            existing,
            obj,
            {
                "attempt_count": obj.get("attempt_count") or 0,
                "last_failed_attempt": datetime.now(timezone.utc).isoformat(),
            },
        )

        invoice = await self._upsert(obj, existing, patch)
        return "invoice_payment_failed" if invoice else "project_not_found"

    async def _handle_invoice_voided(self, obj: Dict[str, Any]) -> str:
        existing = await self.invoice_repo.get_by_gateway_invoice_id(obj["id"])
        voided_at = ((existing.metadata_json or {}) if existing else {}).get("voided_at")
        patch = {
            "status": InvoiceStatus.VOID,
            "metadata_json": self._merge_metadata(
                existing, obj, {"voided_at": voided_at or datetime.now(timezone.utc).isoformat()}
            ),
        }

        invoice = await self._upsert(obj, existing, patch)
        if invoice is None:
            return "project_not_found"

        lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
        item_ids = [line.pending_source_item_id for line in lines if line.pending_source_item_id]
        reverted = await self.ledger.revert_to_pending(item_ids, invoice.id, created_by=invoice.created_by)
        logger.info(f"Invoice {invoice.invoice_number} voided, {reverted} pending items returned to the queue")
        return "invoice_voided"

    def _totals_patch(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "subtotal_cents": obj.get("subtotal") or 0,
            "tax_cents": _tax_cents(obj),
            "total_cents": obj.get("total") or 0,
            "hosted_url": obj.get("hosted_invoice_url"),
            "pdf_url": obj.get("invoice_pdf"),
        }

    @staticmethod
    def _merge_metadata(
        existing: Optional[Invoice], obj: Dict[str, Any], extra: Dict[str, Any]
    ) -> Dict[str, Any]:
        merged = dict((existing.metadata_json or {}) if existing else {})
        merged.update(obj.get("metadata") or {})
        merged.update(extra)
        return merged

    async def _upsert(
        self,
        obj: Dict[str, Any],
        existing: Optional[Invoice],
        patch: Dict[str, Any],
    ) -> Optional[Invoice]:
        defaults: Dict[str, Any] = {}
        if existing is None:
            project = await self._resolve_project(obj)
            if project is None:
                logger.warning(f"No project owns gateway invoice {obj['id']}; event acknowledged without changes")
                return None
            defaults = self._defaults_for(obj, project)

        invoice, created = await self.invoice_repo.upsert_by_gateway_id(obj["id"], patch, defaults)
        if created:
            logger.info(f"Mirrored gateway invoice {obj['id']} as {invoice.invoice_number}")
        return invoice

    async def _resolve_project(self, obj: Dict[str, Any]) -> Optional[Project]:
        metadata = obj.get("metadata") or {}
        if metadata.get("project_id"):
            project = await self.project_repo.get_by_id(metadata["project_id"])
            if project:
                return project

        subscription_id = _expandable_id(obj.get("subscription"))
        if subscription_id:
            project = await self.project_repo.get_by_gateway_subscription_id(subscription_id)
            if project:
                return project

        customer_id = _expandable_id(obj.get("customer"))
        if customer_id:
            return await self.project_repo.get_by_gateway_customer_id(customer_id)
        return None

    @staticmethod
    def _defaults_for(obj: Dict[str, Any], project: Project) -> Dict[str, Any]:
        metadata = obj.get("metadata") or {}
        try:
            collection_method = CollectionMethod(obj.get("collection_method") or "charge_automatically")
        except ValueError:
            collection_method = CollectionMethod.CHARGE_AUTOMATICALLY

        return {
            "project_id": project.id,
            "client_id": metadata.get("client_id") or project.client_id,
            "billing_period_id": metadata.get("billing_period_id"),
            "gateway_customer_id": _expandable_id(obj.get("customer")) or project.gateway_customer_id,
            "gateway_subscription_id": _expandable_id(obj.get("subscription")),
            "payment_method_type": project.payment_method_type,
            "collection_method": collection_method,
            "due_date": _unix_to_date(obj.get("due_date")),
            "status": InvoiceStatus.DRAFT,
            "created_by": project.created_by,
        }
