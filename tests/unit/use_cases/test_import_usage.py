"""Unit tests for usage import aggregation and the ImportUsage use case"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.billing.dtos import ImportUsageCommandDTO
from src.app.use_cases.billing.import_usage import ImportUsage, aggregate_usage_rows
from src.domain.billing_period import BillingPeriod
from src.domain.pending_invoice_item import PendingItemSourceType
from src.domain.project import Project


class TestAggregateUsageRows:
    def test_total_cost_preferred_over_unit_price(self):
        rows, cents, tokens, dates, warnings = aggregate_usage_rows(
            [{"date": "2024-01-03", "quantity": 1000, "unit_price": "0.5", "total_cost": "2.40", "total_tokens": 1000}]
        )

        assert (rows, cents, tokens) == (1, 240, 1000)
        assert dates == [date(2024, 1, 3)]
        assert warnings == []

    def test_unit_price_times_quantity(self):
        _, cents, _, _, _ = aggregate_usage_rows([{"date": "2024-01-03", "quantity": "3", "unit_price": "$1.005"}])

        assert cents == 302

    def test_invalid_rows_skipped_with_warnings(self):
        rows, cents, _, _, warnings = aggregate_usage_rows(
            [
                {"date": "not-a-date", "total_cost": "1.00"},
                {"date": "2024-01-04", "total_cost": "0"},
                {"date": "2024-01-05T10:00:00Z", "total_cost": "1,000.00"},
            ]
        )

        assert rows == 1
        assert cents == 100000
        assert warnings == ['Row 1: invalid date "not-a-date"', "Row 2: missing or invalid cost."]


@pytest.fixture
def period():
    return BillingPeriod(
        id="period-1",
        project_id="project-1",
        client_id="client-1",
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 31),
        created_by="user-1",
    )


@pytest.fixture
def use_case(mock_uow, period):
    billing_period_repo = MagicMock()
    billing_period_repo.get_by_id = AsyncMock(return_value=period)
    project_repo = MagicMock()
    project_repo.get_by_id = AsyncMock(
        return_value=Project(id="project-1", name="Acme Site", client_id="client-1", created_by="user-1")
    )
    usage_event_repo = MagicMock()

    async def create_event(event):
        event.id = "event-1"
        return event

    usage_event_repo.create = AsyncMock(side_effect=create_event)
    usage_event_repo.update = AsyncMock(side_effect=lambda event: event)

    ledger = MagicMock()

    async def enqueue(item):
        item.id = "item-1"
        return item

    ledger.enqueue = AsyncMock(side_effect=enqueue)
    return ImportUsage(mock_uow, billing_period_repo, project_repo, usage_event_repo, ledger)


def _command(rows, **overrides):
    return ImportUsageCommandDTO(created_by="user-1", billing_period_id="period-1", rows=rows, **overrides)


@pytest.mark.asyncio
class TestImportUsage:
    async def test_batch_becomes_one_event_and_one_pending_item(self, use_case, mock_uow):
        """
        Given: Two valid rows and one invalid row
        When: The batch is imported
        Then: One usage event and one usage pending item carry the batch total
        """
        result = await use_case.execute(
            _command(
                [
                    {"date": "2024-01-03", "total_cost": "2.40", "total_tokens": 1200},
                    {"date": "2024-01-09", "total_cost": "1.60", "total_tokens": 800},
                    {"date": "", "total_cost": "9.99"},
                ]
            )
        )

        assert result.is_ok()
        response = result.value
        assert response.usage_event_id == "event-1"
        assert response.pending_item_id == "item-1"
        assert response.rows_imported == 2
        assert response.rows_skipped == 1
        assert response.total_cents == 400
        assert response.total_tokens == 2000
        assert len(response.warnings) == 1

        item = use_case.ledger.enqueue.call_args.args[0]
        assert item.source_type == PendingItemSourceType.USAGE
        assert item.source_ref_id == "event-1"
        assert item.quantity == Decimal("1")
        assert item.unit_price_cents == 400
        assert item.description == "AI usage 2024-01-03 → 2024-01-09 (2 rows; 2,000 tokens)"
        assert item.metadata_json["billing_period_id"] == "period-1"

        event = use_case.usage_event_repo.update.call_args.args[0]
        assert event.pending_item_id == "item-1"
        assert event.event_date == date(2024, 1, 9)
        mock_uow.commit.assert_awaited_once()

    async def test_cost_only_description(self, use_case):
        result = await use_case.execute(_command([{"date": "2024-01-03", "total_cost": "5"}]))

        item = use_case.ledger.enqueue.call_args.args[0]
        assert result.is_ok()
        assert item.description.endswith("(1 rows; cost import)")

    async def test_no_valid_rows_rejected(self, use_case, mock_uow):
        result = await use_case.execute(_command([{"date": "bad", "total_cost": "1"}]))

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"
        use_case.usage_event_repo.create.assert_not_called()
        mock_uow.rollback.assert_awaited_once()

    async def test_period_client_mismatch(self, use_case, period):
        period.client_id = "client-2"

        result = await use_case.execute(_command([{"date": "2024-01-03", "total_cost": "5"}]))

        assert result.error.code == "VALIDATION_ERROR"

    async def test_missing_period(self, use_case):
        use_case.billing_period_repo.get_by_id.return_value = None

        result = await use_case.execute(_command([{"date": "2024-01-03", "total_cost": "5"}]))

        assert result.error.code == "NOT_FOUND"
