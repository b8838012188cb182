"""Stripe Payment Gateway Implementation

Implements PaymentGateway on the stripe SDK. SDK calls are blocking and run in
a worker thread; the API key travels with every request so no module-level
stripe state is shared between tenants or tests.
"""

import asyncio
import json
import logging
from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, Optional

import stripe

from src.app.errors import UpstreamGatewayError, ValidationError
from src.app.services.payment_gateway import (
    ChargeDetails,
    DraftInvoiceRequest,
    GatewayInvoice,
    PaymentGateway,
    PaymentMethodSummary,
)

logger = logging.getLogger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300

WALLET_BRANDS = {"link": "Link", "klarna": "Klarna"}


def due_date_to_unix(value) -> int:
    """Noon UTC of the due date, so the calendar day survives any display timezone"""
    return int(datetime.combine(value, time(12, 0), tzinfo=timezone.utc).timestamp())


def summarize_payment_method(details: Optional[Dict[str, Any]]) -> PaymentMethodSummary:
    """
    Reduce Stripe payment_method_details (or a PaymentMethod) to method/brand/last4

    Args:
        details: ``payment_method_details`` of a charge, or a PaymentMethod object

    Returns:
        PaymentMethodSummary (all fields None when details are absent)
    """
    if not details:
        return PaymentMethodSummary()

    method = details.get("type")
    if method == "card":
        card = details.get("card") or {}
        return PaymentMethodSummary(method="card", brand=card.get("brand"), last4=card.get("last4"))
    if method == "us_bank_account":
        bank = details.get("us_bank_account") or {}
        return PaymentMethodSummary(method=method, brand=bank.get("bank_name"), last4=bank.get("last4"))
    if method in WALLET_BRANDS:
        return PaymentMethodSummary(method=method, brand=WALLET_BRANDS[method])
    return PaymentMethodSummary(method=method)


def _to_gateway_invoice(invoice: Dict[str, Any]) -> GatewayInvoice:
    return GatewayInvoice(
        id=invoice["id"],
        status=invoice.get("status"),
        customer_id=_expandable_id(invoice.get("customer")),
        subscription_id=_expandable_id(invoice.get("subscription")),
        hosted_url=invoice.get("hosted_invoice_url"),
        pdf_url=invoice.get("invoice_pdf"),
        subtotal_cents=invoice.get("subtotal") or 0,
        tax_cents=invoice.get("tax") or 0,
        total_cents=invoice.get("total") or 0,
    )


def _expandable_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


class StripePaymentGateway(PaymentGateway):
    """
    Stripe implementation of PaymentGateway

    Features:
    - Per-request API key and pinned API version
    - Stripe errors mapped to UpstreamGatewayError with a missing-resource hint
    - Webhook signature verification
    """

    def __init__(self, secret_key: str, webhook_secret: str = "", api_version: Optional[str] = None):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **params) -> Any:
        if not self.secret_key:
            raise UpstreamGatewayError(
                "Payment gateway is not configured",
                reason="STRIPE_SECRET_KEY is empty",
            )

        params["api_key"] = self.secret_key
        if self.api_version:
            params["stripe_version"] = self.api_version

        try:
            return await asyncio.to_thread(fn, *args, **params)
        except stripe.InvalidRequestError as e:
            missing = None
            if getattr(e, "code", None) == "resource_missing":
                missing = _guess_missing_resource(str(e)) or e.param
            logger.warning(f"Stripe rejected {operation}: {e}")
            raise UpstreamGatewayError(
                f"Payment gateway rejected {operation}",
                reason=e.user_message or str(e),
                missing_resource=missing,
            ) from e
        except stripe.APIConnectionError as e:
            logger.error(f"Stripe unreachable during {operation}: {e}")
            raise UpstreamGatewayError(
                f"Payment gateway unreachable during {operation}",
                reason=str(e),
                unreachable=True,
            ) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}")
            raise UpstreamGatewayError(
                f"Payment gateway {operation} failed",
                reason=e.user_message or str(e),
            ) from e

    async def create_customer(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        customer = await self._call(
            "customer creation",
            stripe.Customer.create,
            name=name,
            email=email,
            phone=phone,
            metadata=metadata or {},
        )
        logger.info(f"Created Stripe customer {customer['id']}")
        return customer["id"]

    async def update_customer(
        self,
        customer_id: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        params: Dict[str, Any] = {"name": name, "metadata": metadata or {}}
        if email:
            params["email"] = email
        if phone:
            params["phone"] = phone
        await self._call("customer update", stripe.Customer.modify, customer_id, **params)

    async def create_draft_invoice(self, request: DraftInvoiceRequest) -> GatewayInvoice:
        params: Dict[str, Any] = {
            "customer": request.customer_id,
            "collection_method": request.collection_method,
            "description": request.description,
            "metadata": request.metadata,
            "auto_advance": False,
            "pending_invoice_items_behavior": "exclude",
        }
        if request.subscription_id:
            params["subscription"] = request.subscription_id
        if request.collection_method == "send_invoice" and request.due_date:
            params["due_date"] = due_date_to_unix(request.due_date)

        invoice = await self._call("invoice creation", stripe.Invoice.create, **params)
        logger.info(f"Created Stripe draft invoice {invoice['id']} for customer {request.customer_id}")
        return _to_gateway_invoice(invoice)

    async def add_invoice_line(
        self,
        gateway_invoice_id: str,
        customer_id: str,
        description: str,
        amount_cents: int,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        item = await self._call(
            "invoice item creation",
            stripe.InvoiceItem.create,
            customer=customer_id,
            invoice=gateway_invoice_id,
            amount=amount_cents,
            currency="usd",
            description=description,
            metadata=metadata or {},
        )
        return item["id"]

    async def finalize_invoice(self, gateway_invoice_id: str, send: bool = False) -> GatewayInvoice:
        invoice = await self._call(
            "invoice finalization",
            stripe.Invoice.finalize_invoice,
            gateway_invoice_id,
            auto_advance=True,
        )
        if send:
            invoice = await self._call("invoice send", stripe.Invoice.send_invoice, gateway_invoice_id)
        return _to_gateway_invoice(invoice)

    async def delete_draft_invoice(self, gateway_invoice_id: str) -> None:
        await self._call("draft invoice deletion", stripe.Invoice.delete, gateway_invoice_id)

    async def retrieve_charge(self, charge_id: str) -> ChargeDetails:
        charge = await self._call(
            "charge lookup",
            stripe.Charge.retrieve,
            charge_id,
            expand=["balance_transaction"],
        )
        balance = charge.get("balance_transaction")
        fee_cents = 0
        net_cents = None
        if balance and not isinstance(balance, str):
            fee_cents = balance.get("fee") or 0
            net_cents = balance.get("net")
        return ChargeDetails(
            fee_cents=fee_cents,
            net_cents=net_cents,
            payment_method=summarize_payment_method(charge.get("payment_method_details")),
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentMethodSummary:
        intent = await self._call(
            "payment intent lookup",
            stripe.PaymentIntent.retrieve,
            payment_intent_id,
            expand=["payment_method", "latest_charge"],
        )
        payment_method = intent.get("payment_method")
        if payment_method and not isinstance(payment_method, str):
            return summarize_payment_method(payment_method)

        latest_charge = intent.get("latest_charge")
        if latest_charge and not isinstance(latest_charge, str):
            return summarize_payment_method(latest_charge.get("payment_method_details"))
        return PaymentMethodSummary()

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if not self.webhook_secret:
            raise ValidationError("Webhook secret is not configured")
        if not signature:
            raise ValidationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError("Webhook payload is not valid UTF-8", reason=str(e)) from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS
            )
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature", reason=str(e)) from e

        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValidationError("Webhook payload is not valid JSON", reason=str(e)) from e

        if not isinstance(event, dict) or "type" not in event:
            raise ValidationError("Webhook payload is not an event")
        return event


def _guess_missing_resource(message: str) -> Optional[str]:
    lowered = message.lower()
    for resource in ("customer", "subscription", "invoice", "charge", "payment_intent"):
        if f"no such {resource}" in lowered:
            return resource
    return None
