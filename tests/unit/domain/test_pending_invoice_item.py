"""Unit tests for PendingInvoiceItem domain entity"""

import pytest
from decimal import Decimal
from src.domain.client import Client
from src.domain.pending_invoice_item import (
    PendingInvoiceItem,
    PendingItemSourceType,
    PendingItemStatus,
    compute_amount_cents,
)


class TestComputeAmountCents:
    """Test amount rounding"""

    @pytest.mark.parametrize(
        "quantity, unit_price_cents, expected",
        [
            (Decimal("1"), 10000, 10000),
            (Decimal("2.5"), 1999, 4998),
            (Decimal("0.5"), 1, 1),
            (Decimal("1.25"), 2, 3),
            (Decimal("0"), 5000, 0),
        ],
    )
    def test_rounds_half_up(self, quantity, unit_price_cents, expected):
        assert compute_amount_cents(quantity, unit_price_cents) == expected

    def test_accepts_float_quantity(self):
        """Float quantities go through their string form, avoiding binary error"""
        assert compute_amount_cents(0.1, 3) == 0
        assert compute_amount_cents(1.5, 1) == 2


class TestPendingInvoiceItem:
    def test_defaults(self):
        # Arrange & Act
        item = PendingInvoiceItem(
            project_id="project-1",
            source_type=PendingItemSourceType.MANUAL,
            description="Onboarding",
            unit_price_cents=25000,
            created_by="user-1",
        )

        # Assert
        assert item.status == PendingItemStatus.PENDING
        assert item.quantity == Decimal("1")
        assert item.billed_invoice_id is None
        assert item.id

    def test_billing_period_id_comes_from_metadata(self):
        item = PendingInvoiceItem(
            project_id="project-1",
            source_type=PendingItemSourceType.USAGE,
            description="AI usage",
            unit_price_cents=100,
            metadata_json={"billing_period_id": "period-1"},
            created_by="user-1",
        )

        assert item.billing_period_id == "period-1"

    def test_billing_period_id_is_none_without_metadata(self):
        item = PendingInvoiceItem(
            project_id="project-1",
            source_type=PendingItemSourceType.TASK,
            description="Landing page",
            unit_price_cents=100,
            created_by="user-1",
        )

        assert item.billing_period_id is None


class TestClientDisplayName:
    def test_prefers_name(self):
        assert Client(name="Acme", company_name="Acme LLC", created_by="u").display_name() == "Acme"

    def test_falls_back_to_company_name(self):
        assert Client(name="  ", company_name="Acme LLC", created_by="u").display_name() == "Acme LLC"

    def test_none_when_both_blank(self):
        assert Client(name="", company_name=None, created_by="u").display_name() is None
