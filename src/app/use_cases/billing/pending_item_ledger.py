"""Pending-Item Ledger

Owns the pending invoice item lifecycle: pending -> billed (exactly once),
pending -> voided, billed -> pending (void rollback only).
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from src.app.errors import ConflictError, NotFoundError
from src.app.repositories.pending_invoice_item_repository import PendingInvoiceItemRepository
from src.app.repositories.usage_event_repository import UsageEventRepository
from src.domain.billing_period import BillingPeriod
from src.domain.pending_invoice_item import (
    PendingInvoiceItem,
    PendingItemSourceType,
    PendingItemStatus,
    compute_amount_cents,
)

logger = logging.getLogger(__name__)


class PendingItemLedger:
    """
    Queue of billable facts awaiting an invoice

    Does not commit; callers own the transaction.
    """

    def __init__(
        self,
        pending_item_repo: PendingInvoiceItemRepository,
        usage_event_repo: Optional[UsageEventRepository] = None,
    ):
        self.pending_item_repo = pending_item_repo
        self.usage_event_repo = usage_event_repo

    async def enqueue(self, item: PendingInvoiceItem) -> PendingInvoiceItem:
        item.amount_cents = compute_amount_cents(item.quantity, item.unit_price_cents)
        item.status = PendingItemStatus.PENDING
        item.billed_invoice_id = None
        item.billed_invoice_line_item_id = None
        return await self.pending_item_repo.create(item)

    async def get_items(
        self,
        item_ids: List[str],
        created_by: Optional[str] = None,
        for_update: bool = False,
    ) -> List[PendingInvoiceItem]:
        return await self.pending_item_repo.get_by_ids(item_ids, created_by=created_by, for_update=for_update)

    async def list_pending(
        self,
        project_id: str,
        created_by: Optional[str] = None,
        billing_period_id: Optional[str] = None,
        for_update: bool = False,
    ) -> List[PendingInvoiceItem]:
        """
        Pending items of a project, oldest first

        With a billing period, items tagged for another period are excluded;
        items carrying no period tag stay eligible for any period.
        """
        items = await self.pending_item_repo.list_pending_for_project(
            project_id, created_by=created_by, for_update=for_update
        )
        if billing_period_id is None:
            return items
        return [
            item for item in items
            if item.billing_period_id in (None, billing_period_id)
        ]

    async def mark_billed(
        self,
        item_ids: List[str],
        invoice_id: str,
        line_item_id_by_pending_id: Dict[str, str],
        created_by: Optional[str] = None,
    ) -> None:
        """
        Attach pending items to a persisted invoice

        Raises:
            ConflictError: At least one item was no longer pending
        """
        claimed = 0
        for item_id in item_ids:
            if await self.pending_item_repo.mark_billed(
                item_id, invoice_id, line_item_id_by_pending_id.get(item_id), created_by=created_by
            ):
                claimed += 1

        if claimed != len(item_ids):
            raise ConflictError(
                "Pending items were billed by another invoice",
                reason=f"Claimed {claimed} of {len(item_ids)} pending items for invoice {invoice_id}",
            )

    async def mark_voided(self, item_ids: List[str], created_by: Optional[str] = None) -> None:
        """
        Void pending items

        Raises:
            NotFoundError: An item does not exist for the caller
            ConflictError: An item is billed (or was billed concurrently)
        """
        items = await self.pending_item_repo.get_by_ids(item_ids, created_by=created_by)
        found = {item.id: item for item in items}

        for item_id in item_ids:
            item = found.get(item_id)
            if item is None:
                raise NotFoundError(f"Pending item {item_id} not found")
            if item.status == PendingItemStatus.VOIDED:
                continue
            if item.status == PendingItemStatus.BILLED:
                raise ConflictError(
                    f"Pending item {item_id} is already billed",
                    reason=f"Billed on invoice {item.billed_invoice_id}",
                )
            if not await self.pending_item_repo.mark_voided(item_id, created_by=created_by):
                raise ConflictError(f"Pending item {item_id} changed while voiding")

    async def revert_to_pending(
        self,
        item_ids: List[str],
        invoice_id: str,
        created_by: Optional[str] = None,
    ) -> int:
        """
        Return items billed on invoice_id to the queue, clearing their invoice references

        Items already re-billed on another invoice are left alone.
        """
        reverted = 0
        for item_id in item_ids:
            if await self.pending_item_repo.revert_to_pending(item_id, invoice_id, created_by=created_by):
                reverted += 1
        return reverted

    async def queue_usage_events(self, period: BillingPeriod, created_by: str) -> List[PendingInvoiceItem]:
        """
        Turn usage events of a period that never reached the queue into pending items

        Args:
            period: Billing period whose usage events are converted
            created_by: Owner scope

        Returns:
            Newly created pending items
        """
        if self.usage_event_repo is None:
            return []

        events = await self.usage_event_repo.list_unqueued_for_period(period.id, created_by)
        created: List[PendingInvoiceItem] = []
        for event in events:
            item = await self.enqueue(
                PendingInvoiceItem(
                    project_id=event.project_id,
                    client_id=period.client_id,
                    source_type=PendingItemSourceType.USAGE,
                    source_ref_id=event.id,
                    description=event.description or f"{event.metric_type} usage",
                    quantity=event.quantity,
                    unit_price_cents=event.unit_price_cents,
                    metadata_json={
                        "billing_period_id": period.id,
                        "metric_type": event.metric_type,
                        "usage_event_id": event.id,
                        "event_date": event.event_date.isoformat(),
                    },
                    created_by=created_by,
                    created_at=datetime.utcnow(),
                )
            )
            event.pending_item_id = item.id
            await self.usage_event_repo.update(event)
            created.append(item)

        if created:
            logger.info(f"Queued {len(created)} usage events for billing period {period.id}")
        return created
