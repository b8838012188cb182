"""Unit tests for ReconcileGatewayEvent

Tests cover:
- Unknown events acknowledged and ignored
- invoice.paid mirrors totals, fee/net and payment method, idempotent on replay
- invoice.voided returns billed pending items to the queue
- Invoices unknown locally are created for the resolved project
- Handler failures acknowledged with ok=False
- checkout.session.completed marks the payment paid
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.app.errors import UpstreamGatewayError
from src.app.services.payment_gateway import ChargeDetails, PaymentMethodSummary
from src.app.use_cases.billing.reconcile_gateway_event import ReconcileGatewayEvent
from src.domain.invoice import Invoice, InvoiceStatus
from src.domain.invoice_line import InvoiceLineItem, LineType
from src.domain.payment import Payment, PaymentStatus
from src.domain.project import CollectionMethod, PaymentMethodType, Project


class InMemoryInvoices:
    """Upsert semantics of the invoice repository over a dict"""

    def __init__(self, *invoices):
        self.by_gateway_id = {invoice.gateway_invoice_id: invoice for invoice in invoices}
        self.counter = len(invoices)

    async def get_by_gateway_invoice_id(self, gateway_invoice_id):
        return self.by_gateway_id.get(gateway_invoice_id)

    async def upsert_by_gateway_id(self, gateway_invoice_id, patch, defaults):
        invoice = self.by_gateway_id.get(gateway_invoice_id)
        created = invoice is None
        if created:
            self.counter += 1
            invoice = Invoice(
                id=f"invoice-{self.counter}",
                invoice_number=f"INV-202401-{self.counter:06d}",
                gateway_invoice_id=gateway_invoice_id,
                **defaults,
            )
            self.by_gateway_id[gateway_invoice_id] = invoice
        for name, value in patch.items():
            setattr(invoice, name, value)
        return invoice, created


def _invoice(status=InvoiceStatus.OPEN, **overrides):
    values = dict(
        id="invoice-1",
        invoice_number="INV-202401-000001",
        project_id="project-1",
        gateway_invoice_id="in_123",
        subtotal_cents=10000,
        processing_fee_cents=320,
        total_cents=10320,
        net_amount_cents=10320,
        payment_method_type=PaymentMethodType.CARD,
        status=status,
        metadata_json={"pending_item_ids": ["item-1"]},
        created_by="user-1",
    )
    values.update(overrides)
    return Invoice(**values)


def _event(event_type, **obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": {"id": "in_123", **obj}}}


@pytest.fixture
def project():
    return Project(
        id="project-1",
        name="Acme Site",
        client_id="client-1",
        payment_method_type=PaymentMethodType.ACH,
        gateway_customer_id="cus_123",
        created_by="user-1",
    )


@pytest.fixture
def mock_gateway():
    gateway = MagicMock()
    gateway.retrieve_charge = AsyncMock(
        return_value=ChargeDetails(
            fee_cents=329,
            net_cents=9991,
            payment_method=PaymentMethodSummary(method="card", brand="visa", last4="4242"),
        )
    )
    gateway.retrieve_payment_intent = AsyncMock(
        return_value=PaymentMethodSummary(method="card", brand="mastercard", last4="4444")
    )
    return gateway


@pytest.fixture
def mock_ledger():
    ledger = MagicMock()
    ledger.revert_to_pending = AsyncMock(return_value=2)
    return ledger


def _build(mock_uow, invoices, project, gateway, ledger, lines=None, payment=None):
    invoice_line_repo = MagicMock()
    invoice_line_repo.get_by_invoice_id = AsyncMock(return_value=lines or [])
    project_repo = MagicMock()
    project_repo.get_by_id = AsyncMock(return_value=project)
    project_repo.get_by_gateway_subscription_id = AsyncMock(return_value=None)
    project_repo.get_by_gateway_customer_id = AsyncMock(return_value=project)
    payment_repo = MagicMock()
    payment_repo.get_by_checkout_session_id = AsyncMock(return_value=payment)
    payment_repo.update = AsyncMock(side_effect=lambda p: p)
    return ReconcileGatewayEvent(
        uow=mock_uow,
        invoice_repo=invoices,
        invoice_line_repo=invoice_line_repo,
        project_repo=project_repo,
        payment_repo=payment_repo,
        ledger=ledger,
        gateway=gateway,
    )


@pytest.mark.asyncio
class TestReconcileGatewayEvent:
    async def test_unknown_event_ignored(self, mock_uow, project, mock_gateway, mock_ledger):
        use_case = _build(mock_uow, InMemoryInvoices(), project, mock_gateway, mock_ledger)

        result = await use_case.execute({"type": "customer.created", "data": {"object": {"id": "cus_1"}}})

        assert result.is_ok()
        assert result.value.ok is True
        assert result.value.action == "ignored"
        mock_uow.commit.assert_not_called()

    async def test_invoice_paid_mirrors_settlement(self, mock_uow, project, mock_gateway, mock_ledger):
        """
        Given: An open invoice mirrored locally
        When: invoice.paid arrives with a charge
        Then: Status, totals, fee, net and payment method come from the gateway
        """
        invoices = InMemoryInvoices(_invoice())
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)

        result = await use_case.execute(
            _event(
                "invoice.paid",
                amount_paid=10320,
                subtotal=10320,
                charge="ch_1",
                status_transitions={"paid_at": 1706745600},
                hosted_invoice_url="https://pay.example/in_123",
            )
        )

        assert result.value.action == "invoice_paid"
        invoice = invoices.by_gateway_id["in_123"]
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.total_cents == 10320
        assert invoice.processing_fee_cents == 329
        assert invoice.net_amount_cents == 9991
        assert invoice.payment_brand == "visa"
        assert invoice.payment_last4 == "4242"
        assert invoice.metadata_json["paid_at"] == "2024-02-01T00:00:00+00:00"
        assert invoice.metadata_json["pending_item_ids"] == ["item-1"]
        mock_uow.commit.assert_awaited_once()

    async def test_invoice_paid_replay_converges(self, mock_uow, project, mock_gateway, mock_ledger):
        invoices = InMemoryInvoices(_invoice())
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)
        event = _event("invoice.paid", amount_paid=10320, charge="ch_1")

        await use_case.execute(event)
        first = dict(vars(invoices.by_gateway_id["in_123"]))
        await use_case.execute(event)
        second = dict(vars(invoices.by_gateway_id["in_123"]))

        assert len(invoices.by_gateway_id) == 1
        for field in ("status", "total_cents", "net_amount_cents", "processing_fee_cents", "metadata_json"):
            assert first[field] == second[field]

    async def test_charge_lookup_failure_falls_back_to_amount_paid(
        self, mock_uow, project, mock_gateway, mock_ledger
    ):
        mock_gateway.retrieve_charge.side_effect = UpstreamGatewayError("boom")
        invoices = InMemoryInvoices(_invoice())
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)

        result = await use_case.execute(_event("invoice.paid", amount_paid=10320, charge="ch_1"))

        assert result.value.ok is True
        invoice = invoices.by_gateway_id["in_123"]
        assert invoice.net_amount_cents == 10320
        assert invoice.processing_fee_cents == 0

    async def test_unknown_invoice_created_for_project(self, mock_uow, project, mock_gateway, mock_ledger):
        invoices = InMemoryInvoices()
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)

        result = await use_case.execute(
            _event(
                "invoice.finalized",
                status="open",
                total=5000,
                subtotal=5000,
                customer="cus_123",
                collection_method="send_invoice",
                metadata={"project_id": "project-1"},
            )
        )

        assert result.value.action == "invoice_finalized"
        invoice = invoices.by_gateway_id["in_123"]
        assert invoice.project_id == "project-1"
        assert invoice.created_by == "user-1"
        assert invoice.status == InvoiceStatus.OPEN
        assert invoice.collection_method == CollectionMethod.SEND_INVOICE
        assert invoice.total_cents == 5000

    async def test_finalized_does_not_downgrade_paid(self, mock_uow, project, mock_gateway, mock_ledger):
        invoices = InMemoryInvoices(_invoice(status=InvoiceStatus.PAID))
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)

        await use_case.execute(_event("invoice.finalized", status="open", total=10320))

        assert invoices.by_gateway_id["in_123"].status == InvoiceStatus.PAID

    async def test_project_not_found_acknowledged(self, mock_uow, mock_gateway, mock_ledger):
        invoices = InMemoryInvoices()
        use_case = _build(mock_uow, invoices, None, mock_gateway, mock_ledger)

        result = await use_case.execute(_event("invoice.paid", amount_paid=100))

        assert result.value.ok is True
        assert result.value.action == "project_not_found"
        assert invoices.by_gateway_id == {}

    async def test_voided_returns_items_to_queue(self, mock_uow, project, mock_gateway, mock_ledger):
        """
        Given: An invoice whose lines came from two pending items
        When: invoice.voided arrives
        Then: The invoice is void and both items are reverted to pending
        """
        lines = [
            InvoiceLineItem(id="line-1", invoice_id="invoice-1", line_type=LineType.PROJECT,
                            description="Design", amount_cents=5000, pending_source_item_id="item-1",
                            created_by="user-1"),
            InvoiceLineItem(id="line-2", invoice_id="invoice-1", line_type=LineType.USAGE,
                            description="Usage", amount_cents=5000, pending_source_item_id="item-2",
                            created_by="user-1"),
            InvoiceLineItem(id="line-3", invoice_id="invoice-1", line_type=LineType.PROCESSING_FEE,
                            description="Card processing fee", amount_cents=320, created_by="user-1"),
        ]
        invoices = InMemoryInvoices(_invoice())
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger, lines=lines)

        result = await use_case.execute(_event("invoice.voided"))

        assert result.value.action == "invoice_voided"
        assert invoices.by_gateway_id["in_123"].status == InvoiceStatus.VOID
        assert "voided_at" in invoices.by_gateway_id["in_123"].metadata_json
        mock_ledger.revert_to_pending.assert_awaited_once_with(
            ["item-1", "item-2"], "invoice-1", created_by="user-1"
        )

    async def test_payment_failed_records_attempt(self, mock_uow, project, mock_gateway, mock_ledger):
        invoices = InMemoryInvoices(_invoice())
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)

        await use_case.execute(_event("invoice.payment_failed", attempt_count=2))

        invoice = invoices.by_gateway_id["in_123"]
        assert invoice.status == InvoiceStatus.OPEN
        assert invoice.metadata_json["attempt_count"] == 2

    async def test_handler_failure_acknowledged(self, mock_uow, project, mock_gateway, mock_ledger):
        invoices = MagicMock()
        invoices.get_by_gateway_invoice_id = AsyncMock(side_effect=RuntimeError("database down"))
        use_case = _build(mock_uow, invoices, project, mock_gateway, mock_ledger)

        result = await use_case.execute(_event("invoice.paid", amount_paid=100))

        assert result.is_ok()
        assert result.value.ok is False
        assert result.value.message == "handler_exception"
        mock_uow.rollback.assert_awaited_once()

    async def test_checkout_completed_marks_payment_paid(self, mock_uow, project, mock_gateway, mock_ledger):
        payment = Payment(id="payment-1", gateway_checkout_session_id="cs_1", created_by="user-1")
        use_case = _build(mock_uow, InMemoryInvoices(), project, mock_gateway, mock_ledger, payment=payment)

        result = await use_case.execute(
            {
                "type": "checkout.session.completed",
                "data": {"object": {"id": "cs_1", "payment_intent": "pi_1", "amount_total": 2500}},
            }
        )

        assert result.value.action == "payment_paid"
        assert payment.status == PaymentStatus.PAID
        assert payment.amount_cents == 2500
        assert payment.payment_brand == "mastercard"
