"""Payment Gateway Interface

Defines the contract for the external payment gateway (customers, invoices,
charges and webhook verification). Amounts are integer cents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional


@dataclass
class PaymentMethodSummary:
    """How an invoice or checkout was paid"""

    method: Optional[str] = None
    brand: Optional[str] = None
    last4: Optional[str] = None


@dataclass
class ChargeDetails:
    """Charge settlement figures, taken from the balance transaction"""

    fee_cents: int = 0
    net_cents: Optional[int] = None
    payment_method: PaymentMethodSummary = field(default_factory=PaymentMethodSummary)


@dataclass
class GatewayInvoice:
    """Subset of a gateway invoice mirrored locally"""

    id: str
    status: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    hosted_url: Optional[str] = None
    pdf_url: Optional[str] = None
    subtotal_cents: int = 0
    tax_cents: int = 0
    total_cents: int = 0


@dataclass
class DraftInvoiceRequest:
    customer_id: str
    collection_method: str
    description: str
    metadata: Dict[str, str]
    subscription_id: Optional[str] = None
    due_date: Optional[date] = None


class PaymentGateway(ABC):
    """
    Abstract payment gateway

    Every method raises UpstreamGatewayError when the gateway rejects the
    call or cannot be reached; ``missing_resource`` names the object the
    gateway reported as missing (``customer``, ``subscription``, ...).
    """

    @abstractmethod
    async def create_customer(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Create a gateway customer

        Returns:
            Gateway customer id
        """
        pass

    @abstractmethod
    async def update_customer(
        self,
        customer_id: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        pass

    @abstractmethod
    async def create_draft_invoice(self, request: DraftInvoiceRequest) -> GatewayInvoice:
        """
        Create a draft invoice for a customer

        Args:
            request: Customer, collection method, due date and metadata

        Returns:
            The created gateway invoice
        """
        pass

    @abstractmethod
    async def add_invoice_line(
        self,
        gateway_invoice_id: str,
        customer_id: str,
        description: str,
        amount_cents: int,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Attach a line item to a draft invoice

        Returns:
            Gateway invoice item id
        """
        pass

    @abstractmethod
    async def finalize_invoice(self, gateway_invoice_id: str, send: bool = False) -> GatewayInvoice:
        """
        Finalize a draft invoice, optionally emailing it to the customer

        Args:
            gateway_invoice_id: Gateway invoice id
            send: Send the finalized invoice (send_invoice collection)

        Returns:
            The finalized gateway invoice
        """
        pass

    @abstractmethod
    async def delete_draft_invoice(self, gateway_invoice_id: str) -> None:
        pass

    @abstractmethod
    async def retrieve_charge(self, charge_id: str) -> ChargeDetails:
        pass

    @abstractmethod
    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentMethodSummary:
        pass

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify a webhook signature and parse the event

        Args:
            payload: Raw request body
            signature: Value of the Stripe-Signature header

        Returns:
            The event as a dict

        Raises:
            ValidationError: Signature is missing or invalid
        """
        pass
