"""Job API Routes

Trigger for the scheduled billing sweep, guarded by a shared secret.
"""

import hmac
import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from src.libs.result import Error
from src.app.use_cases.billing.dtos import SweepResultDTO
from src.app.use_cases.billing.run_billing_sweep import RunBillingSweep
from src.app.use_cases.billing.settings import BillingSettings
from src.app.services.payment_gateway import PaymentGateway
from src.adapter.repositories.project_repository import SqlAlchemyProjectRepository
from src.adapter.services.notification_service import create_notification_service
from src.depends import (
    AsyncSessionLocal,
    get_billing_settings,
    get_payment_gateway,
    get_session,
    sweep_unit_factory,
)
from src.api.error import ClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def get_session_factory():
    return AsyncSessionLocal


def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    settings: BillingSettings = Depends(get_billing_settings),
) -> None:
    """Accept the secret from X-Cron-Secret or an Authorization bearer token"""
    if not settings.cron_secret:
        raise ClientError(
            Error(code="INTERNAL_ERROR", message="CRON_SECRET is not configured."),
            status_code=500,
        )

    provided = x_cron_secret
    if not provided and authorization and authorization.startswith("Bearer "):
        provided = authorization[len("Bearer "):]

    if not provided or not hmac.compare_digest(provided, settings.cron_secret):
        raise ClientError(Error(code="AUTH_ERROR", message="Unauthorized"))


@router.post(
    "/billing-sweep",
    response_model=SweepResultDTO,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_billing_sweep(
    run_date: Optional[date] = Query(default=None, alias="date"),
    session: AsyncSession = Depends(get_session),
    session_factory=Depends(get_session_factory),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: BillingSettings = Depends(get_billing_settings),
):
    """
    Invoice every project whose billing anchor day is today (UTC).

    **Headers:**
    - `X-Cron-Secret` or `Authorization: Bearer <secret>` (required)

    **Query parameters:**
    - `date` (optional): Sweep as if today were this day (YYYY-MM-DD)

    **Returns:**
    - 200: Per-project results (created, skipped or error)
    - 401: Missing or wrong secret
    - 500: CRON_SECRET is not configured
    """
    today = run_date or datetime.utcnow().date()

    use_case = RunBillingSweep(
        project_repo=SqlAlchemyProjectRepository(session),
        unit_factory=sweep_unit_factory(session_factory, gateway, settings),
        settings=settings,
    )
    result = await use_case.execute(today)

    if result.is_err():
        raise ClientError(result.error)

    summary = result.value
    notifier = create_notification_service(settings.sweep_notification_webhook)
    await notifier.publish_sweep_report(summary.model_dump(mode="json"))
    return summary
