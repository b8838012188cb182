"""In-memory payment gateway and shared values for integration tests"""

import json
from typing import Any, Dict, List, Optional
from src.app.errors import ValidationError
from src.app.services.payment_gateway import (
    ChargeDetails,
    DraftInvoiceRequest,
    GatewayInvoice,
    PaymentGateway,
    PaymentMethodSummary,
)

USER_ID = "user-integration"
WEBHOOK_SIGNATURE = "t=1,v1=valid"


class FakePaymentGateway(PaymentGateway):
    """In-memory gateway recording every call"""

    def __init__(self):
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.invoices: Dict[str, GatewayInvoice] = {}
        self.drafts: List[DraftInvoiceRequest] = []
        self.lines: Dict[str, List[Dict[str, Any]]] = {}
        self.deleted: List[str] = []
        self.sent: List[str] = []

    async def create_customer(self, name, email=None, phone=None, metadata=None) -> str:
        customer_id = f"cus_fake{len(self.customers) + 1}"
        self.customers[customer_id] = {"name": name, "email": email}
        return customer_id

    async def update_customer(self, customer_id, name, email=None, phone=None, metadata=None) -> None:
        self.customers.setdefault(customer_id, {}).update({"name": name, "email": email})

    async def create_draft_invoice(self, request: DraftInvoiceRequest) -> GatewayInvoice:
        invoice = GatewayInvoice(
            id=f"in_fake{len(self.invoices) + 1}",
            status="draft",
            customer_id=request.customer_id,
            subscription_id=request.subscription_id,
        )
        self.drafts.append(request)
        self.invoices[invoice.id] = invoice
        self.lines[invoice.id] = []
        return invoice

    async def add_invoice_line(self, gateway_invoice_id, customer_id, description, amount_cents, metadata=None) -> str:
        self.lines[gateway_invoice_id].append({"description": description, "amount_cents": amount_cents})
        return f"ii_{gateway_invoice_id}_{len(self.lines[gateway_invoice_id])}"

    async def finalize_invoice(self, gateway_invoice_id: str, send: bool = False) -> GatewayInvoice:
        invoice = self.invoices[gateway_invoice_id]
        invoice.status = "open"
        invoice.hosted_url = f"https://pay.example/{gateway_invoice_id}"
        if send:
            self.sent.append(gateway_invoice_id)
        return invoice

    async def delete_draft_invoice(self, gateway_invoice_id: str) -> None:
        self.deleted.append(gateway_invoice_id)
        self.invoices.pop(gateway_invoice_id, None)

    async def retrieve_charge(self, charge_id: str) -> ChargeDetails:
        return ChargeDetails(
            fee_cents=329,
            net_cents=9991,
            payment_method=PaymentMethodSummary(method="card", brand="visa", last4="4242"),
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentMethodSummary:
        return PaymentMethodSummary(method="card", brand="visa", last4="4242")

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != WEBHOOK_SIGNATURE:
            raise ValidationError("Invalid webhook signature")
        return json.loads(payload)



def find_invoice_line(invoice: Dict[str, Any], line_type: str) -> Optional[Dict[str, Any]]:
    return next((line for line in invoice["line_items"] if line["line_type"] == line_type), None)
