import pytest
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.billing.settings import BillingSettings


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def billing_settings():
    return BillingSettings(
        environment="test",
        show_processing_fee_line=True,
        sweep_due_days=7,
        cron_secret="cron-secret",
        company_name="Operations HQ",
    )
