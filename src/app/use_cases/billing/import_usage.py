"""ImportUsage Use Case

Aggregates a batch of normalized usage rows into one usage event and one
pending invoice item tagged with the billing period.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, NotFoundError, ValidationError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.app.repositories.project_repository import ProjectRepository
from src.app.repositories.usage_event_repository import UsageEventRepository
from src.domain.pending_invoice_item import PendingInvoiceItem, PendingItemSourceType
from src.domain.usage_event import UsageEvent
from .billing_calculator import round_half_up
from .pending_item_ledger import PendingItemLedger
from .dtos import ImportUsageCommandDTO, UsageImportResponseDTO

logger = logging.getLogger(__name__)


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value).replace("$", "").replace(",", "").strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _parse_row_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def aggregate_usage_rows(rows: List[Dict[str, Any]]) -> Tuple[int, int, int, List[date], List[str]]:
    """
    Sum cost (cents) and tokens over valid rows

    A row is valid with a parseable date and a positive cost, taken from
    total_cost or else unit_price * quantity (both in dollars).

    Returns:
        (valid_rows, total_cost_cents, total_tokens, dates, warnings)
    """
    warnings: List[str] = []
    valid_rows = 0
    total_cost_cents = 0
    total_tokens = 0
    dates: List[date] = []

    for index, row in enumerate(rows, start=1):
        row_date = _parse_row_date(row.get("date"))
        if row_date is None:
            warnings.append(f'Row {index}: invalid date "{row.get("date")}"')
            continue

        cost = _parse_decimal(row.get("total_cost"))
        if cost is None:
            unit_price = _parse_decimal(row.get("unit_price"))
            quantity = _parse_decimal(row.get("quantity"))
            if unit_price is not None and quantity is not None:
                cost = unit_price * quantity

        if cost is None or cost <= 0:
            warnings.append(f"Row {index}: missing or invalid cost.")
            continue

        total_cost_cents += round_half_up(cost * 100)
        tokens = _parse_decimal(row.get("total_tokens"))
        if tokens is not None:
            total_tokens += int(tokens)
        valid_rows += 1
        dates.append(row_date)

    return valid_rows, total_cost_cents, total_tokens, dates, warnings


class ImportUsage:
    """
    Use Case: Import usage rows into a billing period

    Business Rules:
    1. Period and project must belong to the caller
    2. Project must be linked to a client; a period client must match it
    3. Invalid rows are skipped with a warning
    4. A batch without valid rows (or with zero cost) is rejected
    5. One aggregate usage event and one pending item (quantity 1, unit price
       = batch total) are written per batch
    """

    def __init__(
        self,
        uow: UnitOfWork,
        billing_period_repo: BillingPeriodRepository,
        project_repo: ProjectRepository,
        usage_event_repo: UsageEventRepository,
        ledger: PendingItemLedger,
    ):
        self.uow = uow
        self.billing_period_repo = billing_period_repo
        self.project_repo = project_repo
        self.usage_event_repo = usage_event_repo
        self.ledger = ledger

    async def execute(self, command: ImportUsageCommandDTO) -> Result[UsageImportResponseDTO]:
        try:
            period = await self.billing_period_repo.get_by_id(command.billing_period_id, command.created_by)
            if not period:
                raise NotFoundError("Billing period not found")

            project = await self.project_repo.get_by_id(period.project_id, command.created_by)
            if not project:
                raise NotFoundError("Project not found")
            if not project.client_id:
                raise ValidationError("Project must be linked to a client")
            if period.client_id and period.client_id != project.client_id:
                raise ValidationError("Billing period does not belong to this client")

            valid_rows, total_cents, total_tokens, dates, warnings = aggregate_usage_rows(command.rows)
            if valid_rows == 0 or total_cents <= 0:
                raise ValidationError("No valid rows to import", reason="; ".join(warnings) or None)

            date_start = min(dates).isoformat()
            date_end = max(dates).isoformat()
            token_segment = f"{total_tokens:,} tokens" if total_tokens > 0 else "cost import"
            description = command.description or (
                f"AI usage {date_start} → {date_end} ({valid_rows} rows; {token_segment})"
            )
            metadata = {
                "billing_period_id": period.id,
                "metric_type": command.metric_type,
                "total_rows": valid_rows,
                "total_tokens": total_tokens,
                "sum_cost_cents": total_cents,
                "date_start": date_start,
                "date_end": date_end,
                "warnings": warnings,
            }

            event = await self.usage_event_repo.create(
                UsageEvent(
                    project_id=project.id,
                    billing_period_id=period.id,
                    event_date=max(dates),
                    metric_type=command.metric_type,
                    quantity=Decimal("1"),
                    unit_price_cents=total_cents,
                    description=description,
                    metadata_json=metadata,
                    created_by=command.created_by,
                )
            )

            item = await self.ledger.enqueue(
                PendingInvoiceItem(
                    project_id=project.id,
                    client_id=period.client_id or project.client_id,
                    source_type=PendingItemSourceType.USAGE,
                    source_ref_id=event.id,
                    description=description,
                    quantity=Decimal("1"),
                    unit_price_cents=total_cents,
                    metadata_json={**metadata, "usage_event_id": event.id},
                    created_by=command.created_by,
                )
            )

            event.pending_item_id = item.id
            await self.usage_event_repo.update(event)
            await self.uow.commit()

            logger.info(
                f"Imported {valid_rows} usage rows ({total_cents} cents) into period {period.id}, "
                f"skipped {len(warnings)}"
            )

            return Return.ok(
                UsageImportResponseDTO(
                    usage_event_id=event.id,
                    pending_item_id=item.id,
                    billing_period_id=period.id,
                    rows_imported=valid_rows,
                    rows_skipped=len(command.rows) - valid_rows,
                    total_cents=total_cents,
                    total_tokens=total_tokens,
                    warnings=warnings,
                )
            )

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Usage import failed for period {command.billing_period_id}: {e}")
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to import usage rows",
                    reason=str(e),
                )
            )
