"""RunBillingSweep Use Case

Daily sweep that invoices every project whose billing anchor day is today.
"""

import logging
import time
from calendar import monthrange
from datetime import date, timedelta
from typing import AsyncContextManager, Callable, List, NamedTuple, Tuple

from src.libs.result import Result, Return
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.app.repositories.project_repository import ProjectRepository
from src.domain.billing_period import BillingPeriod, BillingPeriodStatus
from src.domain.project import CollectionMethod, PaymentMethodType, Project
from .compose_invoice import ComposeDraftInvoice
from .finalize_invoice import FinalizeInvoice
from .pending_item_ledger import PendingItemLedger
from .settings import BillingSettings
from .dtos import (
    ComposeInvoiceCommandDTO,
    FinalizeInvoiceCommandDTO,
    SweepProjectResultDTO,
    SweepResultDTO,
)

logger = logging.getLogger(__name__)


class SweepUnit(NamedTuple):
    """Components bound to one project's session"""

    uow: UnitOfWork
    billing_period_repo: BillingPeriodRepository
    ledger: PendingItemLedger
    compose: ComposeDraftInvoice
    finalize: FinalizeInvoice


SweepUnitFactory = Callable[[], AsyncContextManager[SweepUnit]]


def previous_cycle(today: date) -> Tuple[date, date]:
    """
    Billing cycle that ends the day before ``today``

    The cycle starts on the same day of the previous month, clamped to that
    month's length.
    """
    year, month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
    _, last_day = monthrange(year, month)
    start = date(year, month, min(today.day, last_day))
    end = today - timedelta(days=1)
    return start, max(start, end)


def sweep_collection_method(project: Project) -> CollectionMethod:
    collection_method = project.billing_default_collection_method or CollectionMethod.CHARGE_AUTOMATICALLY
    if collection_method == CollectionMethod.CHARGE_AUTOMATICALLY and (
        not project.auto_pay_enabled or project.payment_method_type == PaymentMethodType.OFFLINE
    ):
        return CollectionMethod.SEND_INVOICE
    return collection_method


class RunBillingSweep:
    """
    Use Case: Invoice all projects anchored on today

    Business Rules:
    1. Only projects with billing_anchor_day == today.day are considered
    2. Projects without pending items or without a client are skipped
    3. The project's default collection method is used, except that
       charge_automatically falls back to send_invoice without auto-pay or for
       offline projects; send_invoice is due in sweep_due_days days. A
       send_invoice default wins even for auto-pay card projects
    4. The retainer and every pending item (oldest first) are invoiced
    5. billing_auto_finalize finalizes the draft (sent for send_invoice)
    6. Each project runs in its own session; a failure never aborts the sweep
    """

    def __init__(
        self,
        project_repo: ProjectRepository,
        unit_factory: SweepUnitFactory,
        settings: BillingSettings,
    ):
        self.project_repo = project_repo
        self.unit_factory = unit_factory
        self.settings = settings

    async def execute(self, today: date) -> Result[SweepResultDTO]:
        start_time = time.time()
        projects = await self.project_repo.list_by_billing_anchor_day(today.day)
        logger.info(f"Billing sweep for {today.isoformat()}: {len(projects)} projects anchored on day {today.day}")

        results: List[SweepProjectResultDTO] = []
        for project in projects:
            try:
                outcome = await self._sweep_project(project, today)
            except Exception as e:
                logger.error(f"Billing sweep failed for project {project.id}: {e}")
                outcome = SweepProjectResultDTO(project_id=project.id, status="error", message=str(e))
            results.append(outcome)

        summary = SweepResultDTO(
            run_date=today,
            processed=len(results),
            created=sum(1 for r in results if r.status == "created"),
            skipped=sum(1 for r in results if r.status == "skipped"),
            errors=sum(1 for r in results if r.status == "error"),
            results=results,
        )

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Billing sweep complete: {summary.created} created, {summary.skipped} skipped, "
            f"{summary.errors} errors, {execution_time_ms}ms"
        )
        return Return.ok(summary)

    async def _sweep_project(self, project: Project, today: date) -> SweepProjectResultDTO:
        async with self.unit_factory() as unit:
            pending = await unit.ledger.list_pending(project.id, project.created_by)
            if not pending:
                return SweepProjectResultDTO(project_id=project.id, status="skipped", reason="no_pending_items")
            if not project.client_id:
                return SweepProjectResultDTO(project_id=project.id, status="skipped", reason="project_missing_client")

            period = await self._ensure_period(unit, project, today)

            collection_method = sweep_collection_method(project)
            due_date = None
            if collection_method == CollectionMethod.SEND_INVOICE:
                due_date = (today + timedelta(days=self.settings.sweep_due_days)).isoformat()

            count = len(pending)
            compose_result = await unit.compose.execute(
                ComposeInvoiceCommandDTO(
                    created_by=project.created_by,
                    billing_period_id=period.id,
                    pending_item_ids=[item.id for item in pending],
                    include_retainer=True,
                    collection_method=collection_method,
                    due_date=due_date,
                    memo=f"Monthly sweep for {project.name} ({count} item{'' if count == 1 else 's'})",
                )
            )
            if compose_result.is_err():
                logger.warning(
                    f"Billing sweep could not compose invoice for project {project.id}: "
                    f"{compose_result.error.code} {compose_result.error.message}"
                )
                return SweepProjectResultDTO(
                    project_id=project.id,
                    status="error",
                    reason=compose_result.error.code,
                    message=compose_result.error.message,
                )

            invoice = compose_result.value
            outcome = SweepProjectResultDTO(project_id=project.id, status="created", invoice_id=invoice.id)

            if project.billing_auto_finalize:
                finalize_result = await unit.finalize.execute(
                    FinalizeInvoiceCommandDTO(
                        created_by=project.created_by,
                        invoice_id=invoice.id,
                        send=collection_method == CollectionMethod.SEND_INVOICE,
                    )
                )
                if finalize_result.is_err():
                    # The draft stays billed locally; it can be finalized by hand
                    logger.warning(
                        f"Billing sweep left invoice {invoice.invoice_number} as draft: "
                        f"{finalize_result.error.message}"
                    )
                    outcome.message = f"Finalize failed: {finalize_result.error.message}"
                else:
                    outcome.finalized = True

            logger.info(f"Billing sweep created invoice {invoice.invoice_number} for project {project.id}")
            return outcome

    async def _ensure_period(self, unit: SweepUnit, project: Project, today: date) -> BillingPeriod:
        period_start, period_end = previous_cycle(today)
        period = await unit.billing_period_repo.find_covering(project.id, period_end, project.created_by)
        if period:
            return period

        period = await unit.billing_period_repo.create(
            BillingPeriod(
                project_id=project.id,
                client_id=project.client_id,
                period_start=period_start,
                period_end=period_end,
                status=BillingPeriodStatus.DRAFT,
                notes="Opened by billing sweep",
                created_by=project.created_by,
            )
        )
        await unit.uow.commit()
        logger.info(f"Opened billing period {period.id} ({period_start} - {period_end}) for project {project.id}")
        return period
