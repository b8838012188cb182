from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.libs.result import Error
from src.adapter.repositories import (
    SqlAlchemyBillingPeriodRepository,
    SqlAlchemyClientRepository,
    SqlAlchemyInvoiceLineRepository,
    SqlAlchemyInvoiceRepository,
    SqlAlchemyPendingInvoiceItemRepository,
    SqlAlchemyProjectRepository,
    SqlAlchemyUsageEventRepository,
)
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.adapter.services.stripe_gateway import StripePaymentGateway
from src.app.services.payment_gateway import PaymentGateway
from src.app.use_cases.billing.compose_invoice import ComposeDraftInvoice
from src.app.use_cases.billing.finalize_invoice import FinalizeInvoice
from src.app.use_cases.billing.pending_item_ledger import PendingItemLedger
from src.app.use_cases.billing.run_billing_sweep import SweepUnit
from src.app.use_cases.billing.settings import BillingSettings
from src.api.error import ClientError

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_billing_settings() -> BillingSettings:
    return BillingSettings.from_config(ApplicationConfig)


def create_payment_gateway(settings: BillingSettings) -> PaymentGateway:
    return StripePaymentGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
    )


def get_payment_gateway(settings: BillingSettings = Depends(get_billing_settings)) -> PaymentGateway:
    return create_payment_gateway(settings)


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Acting user taken from the X-User-Id header

    Session handling lives in front of this service; with AUTH_DISABLED a
    missing header falls back to a local development user.
    """
    if x_user_id:
        return x_user_id
    if ApplicationConfig.AUTH_DISABLED:
        return "local-dev"
    raise ClientError(Error(code="AUTH_ERROR", message="Authentication required"))


def build_pending_item_ledger(session: AsyncSession) -> PendingItemLedger:
    return PendingItemLedger(
        SqlAlchemyPendingInvoiceItemRepository(session),
        SqlAlchemyUsageEventRepository(session),
    )


def build_compose_invoice(
    session: AsyncSession,
    gateway: PaymentGateway,
    settings: BillingSettings,
) -> ComposeDraftInvoice:
    return ComposeDraftInvoice(
        uow=SqlAlchemyUnitOfWork(session),
        billing_period_repo=SqlAlchemyBillingPeriodRepository(session),
        project_repo=SqlAlchemyProjectRepository(session),
        client_repo=SqlAlchemyClientRepository(session),
        invoice_repo=SqlAlchemyInvoiceRepository(session),
        invoice_line_repo=SqlAlchemyInvoiceLineRepository(session),
        ledger=build_pending_item_ledger(session),
        gateway=gateway,
        settings=settings,
    )


def build_finalize_invoice(session: AsyncSession, gateway: PaymentGateway) -> FinalizeInvoice:
    return FinalizeInvoice(
        uow=SqlAlchemyUnitOfWork(session),
        invoice_repo=SqlAlchemyInvoiceRepository(session),
        invoice_line_repo=SqlAlchemyInvoiceLineRepository(session),
        gateway=gateway,
    )


def sweep_unit_factory(session_factory, gateway: PaymentGateway, settings: BillingSettings):
    """Factory opening one session per swept project"""

    @asynccontextmanager
    async def open_unit():
        async with session_factory() as session:
            yield SweepUnit(
                uow=SqlAlchemyUnitOfWork(session),
                billing_period_repo=SqlAlchemyBillingPeriodRepository(session),
                ledger=build_pending_item_ledger(session),
                compose=build_compose_invoice(session, gateway, settings),
                finalize=build_finalize_invoice(session, gateway),
            )

    return open_unit
