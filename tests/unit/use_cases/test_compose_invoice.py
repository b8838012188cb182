"""Unit tests for ComposeDraftInvoice

Tests cover:
- Successful draft with retainer, pending items and manual lines
- send_invoice without a due date fails before any gateway call
- Empty invoices are rejected
- Already billed / foreign pending items
- Missing gateway subscription retried without it
- Gateway draft deleted when persistence fails
- Customer recreated when the gateway reports it missing
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.errors import ConflictError, UpstreamGatewayError
from src.app.services.payment_gateway import GatewayInvoice
from src.app.use_cases.billing.compose_invoice import ComposeDraftInvoice, parse_due_date
from src.app.use_cases.billing.dtos import ComposeInvoiceCommandDTO, ManualLineDTO
from src.app.errors import ValidationError
from src.domain.billing_period import BillingPeriod
from src.domain.client import Client
from src.domain.invoice_line import LineType
from src.domain.pending_invoice_item import PendingInvoiceItem, PendingItemSourceType, PendingItemStatus
from src.domain.project import CollectionMethod, PaymentMethodType, Project


USER = "user-1"


def _pending(item_id, source_type=PendingItemSourceType.MANUAL, status=PendingItemStatus.PENDING, project_id="project-1"):
    return PendingInvoiceItem(
        id=item_id,
        project_id=project_id,
        source_type=source_type,
        description=f"Item {item_id}",
        quantity=Decimal("2"),
        unit_price_cents=5000,
        amount_cents=10000,
        status=status,
        created_by=USER,
    )


@pytest.fixture
def period():
    return BillingPeriod(
        id="period-1",
        project_id="project-1",
        client_id="client-1",
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 31),
        created_by=USER,
    )


@pytest.fixture
def project():
    return Project(
        id="project-1",
        name="Acme Site",
        client_id="client-1",
        payment_method_type=PaymentMethodType.OFFLINE,
        base_retainer_cents=150000,
        ach_discount_cents=500,
        gateway_customer_id="cus_existing",
        gateway_subscription_id="sub_123",
        created_by=USER,
    )


@pytest.fixture
def client():
    return Client(id="client-1", name="Acme", email="billing@acme.test", gateway_customer_id="cus_existing", created_by=USER)


@pytest.fixture
def mock_gateway():
    gateway = MagicMock()
    gateway.update_customer = AsyncMock()
    gateway.create_customer = AsyncMock(return_value="cus_new")
    gateway.create_draft_invoice = AsyncMock(return_value=GatewayInvoice(id="in_123", status="draft"))
    gateway.add_invoice_line = AsyncMock()
    gateway.delete_draft_invoice = AsyncMock()
    return gateway


@pytest.fixture
def mock_ledger():
    ledger = MagicMock()
    ledger.list_pending = AsyncMock(return_value=[])
    ledger.queue_usage_events = AsyncMock(return_value=[])
    ledger.mark_billed = AsyncMock()
    return ledger


@pytest.fixture
def mock_invoice_repo():
    repo = MagicMock()
    repo.generate_invoice_number = AsyncMock(return_value="INV-202401-000001")

    async def create(invoice):
        invoice.id = "invoice-1"
        return invoice

    repo.create = AsyncMock(side_effect=create)
    return repo


@pytest.fixture
def mock_invoice_line_repo():
    repo = MagicMock()

    async def create_many(lines):
        for index, line in enumerate(lines):
            line.id = f"line-{index}"
        return lines

    repo.create_many = AsyncMock(side_effect=create_many)
    return repo


@pytest.fixture
def compose(mock_uow, period, project, client, mock_gateway, mock_ledger, mock_invoice_repo,
            mock_invoice_line_repo, billing_settings):
    billing_period_repo = MagicMock()
    billing_period_repo.get_by_id = AsyncMock(return_value=period)
    project_repo = MagicMock()
    project_repo.get_by_id = AsyncMock(return_value=project)
    project_repo.update = AsyncMock(side_effect=lambda p: p)
    client_repo = MagicMock()
    client_repo.get_by_id = AsyncMock(return_value=client)
    client_repo.update = AsyncMock(side_effect=lambda c: c)

    return ComposeDraftInvoice(
        uow=mock_uow,
        billing_period_repo=billing_period_repo,
        project_repo=project_repo,
        client_repo=client_repo,
        invoice_repo=mock_invoice_repo,
        invoice_line_repo=mock_invoice_line_repo,
        ledger=mock_ledger,
        gateway=mock_gateway,
        settings=billing_settings,
    )


def _command(**overrides):
    values = dict(
        created_by=USER,
        billing_period_id="period-1",
        include_retainer=False,
        collection_method=CollectionMethod.CHARGE_AUTOMATICALLY,
    )
    values.update(overrides)
    return ComposeInvoiceCommandDTO(**values)


class TestParseDueDate:
    def test_parses_calendar_date(self):
        assert parse_due_date("2024-02-15") == date(2024, 2, 15)

    @pytest.mark.parametrize("value", [None, "", "15/02/2024", "2024-02-30", "2024-2-5"])
    def test_rejects_invalid_values(self, value):
        with pytest.raises(ValidationError):
            parse_due_date(value)


@pytest.mark.asyncio
class TestComposeSuccess:
    async def test_composes_retainer_items_and_manual_lines(
        self, compose, mock_ledger, mock_gateway, mock_invoice_repo, mock_uow
    ):
        """
        Given: Two pending items, a retainer and one manual credit
        When: The draft is composed with send_invoice
        Then: Lines are priced offline, the gateway draft carries the pending ids,
              and both items are marked billed with their line ids
        """
        items = [_pending("item-1"), _pending("item-2", source_type=PendingItemSourceType.USAGE)]
        mock_ledger.get_items = AsyncMock(return_value=items)

        result = await compose.execute(
            _command(
                pending_item_ids=["item-1", "item-2"],
                include_retainer=True,
                manual_lines=[ManualLineDTO(description="Goodwill credit", unit_price_cents=-5000)],
                collection_method=CollectionMethod.SEND_INVOICE,
                due_date="2024-02-15",
            )
        )

        assert result.is_ok()
        invoice = result.value
        assert invoice.status == "draft"
        assert invoice.subtotal_cents == 150000 + 20000 - 5000
        assert invoice.total_cents == invoice.subtotal_cents
        assert invoice.payment_method_type == "offline"
        assert invoice.due_date == date(2024, 2, 15)
        assert [line.line_type for line in invoice.line_items] == [
            LineType.BASE_SUBSCRIPTION.value,
            LineType.PROJECT.value,
            LineType.USAGE.value,
            LineType.PROJECT.value,
        ]
        assert invoice.line_items[0].description == "Acme Site Monthly Retainer"

        request = mock_gateway.create_draft_invoice.call_args.args[0]
        assert request.subscription_id == "sub_123"
        assert request.metadata["pending_item_ids"] == "item-1,item-2"
        assert request.description == "Services 2024-01-01 → 2024-01-31"
        assert mock_gateway.add_invoice_line.await_count == 4

        mock_ledger.mark_billed.assert_awaited_once_with(
            ["item-1", "item-2"], "invoice-1", {"item-1": "line-1", "item-2": "line-2"}, created_by="user-1"
        )
        mock_uow.commit.assert_awaited()
        mock_gateway.delete_draft_invoice.assert_not_called()

    async def test_card_project_gets_processing_fee(self, compose, project, mock_ledger):
        project.payment_method_type = PaymentMethodType.CARD
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1")])

        result = await compose.execute(_command(pending_item_ids=["item-1"]))

        assert result.is_ok()
        assert result.value.processing_fee_cents == 320
        assert result.value.total_cents == 10320

    async def test_without_ids_uses_period_pending_items(self, compose, mock_ledger):
        items = [_pending("item-1")]
        mock_ledger.list_pending = AsyncMock(return_value=items)
        mock_ledger.get_items = AsyncMock(return_value=items)

        result = await compose.execute(_command())

        assert result.is_ok()
        mock_ledger.list_pending.assert_awaited_once_with("project-1", USER, billing_period_id="period-1")
        mock_ledger.queue_usage_events.assert_not_called()

    async def test_empty_id_list_uses_period_pending_items(self, compose, mock_ledger):
        """
        Given: Two pending items in the period and an empty pending_item_ids list
        When: The draft is composed
        Then: The period items are billed as if no ids had been given
        """
        items = [_pending("item-1"), _pending("item-2")]
        mock_ledger.list_pending = AsyncMock(return_value=items)
        mock_ledger.get_items = AsyncMock(return_value=items)

        result = await compose.execute(_command(pending_item_ids=[]))

        assert result.is_ok()
        mock_ledger.list_pending.assert_awaited_once_with("project-1", USER, billing_period_id="period-1")
        assert mock_ledger.mark_billed.call_args.args[0] == ["item-1", "item-2"]

    async def test_queues_usage_events_when_nothing_pending(self, compose, mock_ledger):
        items = [_pending("usage-1", source_type=PendingItemSourceType.USAGE)]
        mock_ledger.queue_usage_events = AsyncMock(return_value=items)
        mock_ledger.get_items = AsyncMock(return_value=items)

        result = await compose.execute(_command())

        assert result.is_ok()
        mock_ledger.queue_usage_events.assert_awaited_once()


@pytest.mark.asyncio
class TestComposeValidation:
    async def test_send_invoice_without_due_date_never_reaches_gateway(self, compose, mock_ledger, mock_gateway):
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1")])

        result = await compose.execute(
            _command(pending_item_ids=["item-1"], collection_method=CollectionMethod.SEND_INVOICE)
        )

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"
        mock_gateway.create_draft_invoice.assert_not_called()
        mock_gateway.update_customer.assert_not_called()
        mock_gateway.create_customer.assert_not_called()

    async def test_empty_invoice_rejected(self, compose, mock_gateway):
        result = await compose.execute(_command(pending_item_ids=[]))

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"
        compose.ledger.queue_usage_events.assert_awaited_once()
        mock_gateway.create_draft_invoice.assert_not_called()

    async def test_already_billed_item_rejected(self, compose, mock_ledger, mock_gateway):
        mock_ledger.get_items = AsyncMock(
            return_value=[_pending("item-1"), _pending("item-2", status=PendingItemStatus.BILLED)]
        )

        result = await compose.execute(_command(pending_item_ids=["item-1", "item-2"]))

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"
        assert "already billed or missing" in result.error.message
        mock_gateway.create_draft_invoice.assert_not_called()

    async def test_item_of_other_project_rejected(self, compose, mock_ledger):
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1", project_id="project-2")])

        result = await compose.execute(_command(pending_item_ids=["item-1"]))

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"

    async def test_missing_period_is_not_found(self, compose):
        compose.billing_period_repo.get_by_id = AsyncMock(return_value=None)

        result = await compose.execute(_command())

        assert result.is_err()
        assert result.error.code == "NOT_FOUND"

    async def test_project_without_client_rejected(self, compose, period, project):
        period.client_id = None
        project.client_id = None

        result = await compose.execute(_command())

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"


@pytest.mark.asyncio
class TestComposeGateway:
    async def test_missing_subscription_retried_without_it(self, compose, mock_ledger, mock_gateway):
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1")])
        mock_gateway.create_draft_invoice = AsyncMock(
            side_effect=[
                UpstreamGatewayError("No such subscription", missing_resource="subscription"),
                GatewayInvoice(id="in_retry", status="draft"),
            ]
        )

        result = await compose.execute(_command(pending_item_ids=["item-1"], include_retainer=True))

        assert result.is_ok()
        assert result.value.gateway_invoice_id == "in_retry"
        assert mock_gateway.create_draft_invoice.await_count == 2
        retry_request = mock_gateway.create_draft_invoice.call_args_list[1].args[0]
        assert retry_request.subscription_id is None

    async def test_missing_customer_recreated(self, compose, client, project, mock_ledger, mock_gateway):
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1")])
        mock_gateway.update_customer = AsyncMock(
            side_effect=UpstreamGatewayError("No such customer", missing_resource="customer")
        )

        result = await compose.execute(_command(pending_item_ids=["item-1"]))

        assert result.is_ok()
        mock_gateway.create_customer.assert_awaited_once()
        assert client.gateway_customer_id == "cus_new"
        assert project.gateway_customer_id == "cus_new"
        assert result.value.gateway_customer_id == "cus_new"

    async def test_customer_failure_is_invalid_state(self, compose, mock_ledger, mock_gateway):
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1")])
        mock_gateway.update_customer = AsyncMock(side_effect=UpstreamGatewayError("Card declined"))

        result = await compose.execute(_command(pending_item_ids=["item-1"]))

        assert result.is_err()
        assert result.error.code == "INVALID_STATE"
        mock_gateway.create_draft_invoice.assert_not_called()

    async def test_persistence_failure_deletes_gateway_draft(
        self, compose, mock_ledger, mock_gateway, mock_uow
    ):
        mock_ledger.get_items = AsyncMock(return_value=[_pending("item-1")])
        mock_ledger.mark_billed = AsyncMock(side_effect=ConflictError("Pending items were billed by another invoice"))

        result = await compose.execute(_command(pending_item_ids=["item-1"]))

        assert result.is_err()
        assert result.error.code == "CONFLICT"
        mock_uow.rollback.assert_awaited()
        mock_gateway.delete_draft_invoice.assert_awaited_once_with("in_123")

    async def test_item_claimed_before_gateway_call_is_conflict(self, compose, mock_ledger, mock_gateway):
        mock_ledger.get_items = AsyncMock(
            side_effect=[[_pending("item-1")], [_pending("item-1", status=PendingItemStatus.BILLED)]]
        )

        result = await compose.execute(_command(pending_item_ids=["item-1"]))

        assert result.is_err()
        assert result.error.code == "CONFLICT"
        mock_gateway.create_draft_invoice.assert_not_called()
