"""ComposeDraftInvoice Use Case

Turns pending items, an optional retainer and manual lines into a draft
invoice at the payment gateway and mirrors it locally, marking every included
pending item billed.
"""

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.libs.result import Result, Return, Error
from src.app.errors import (
    BillingError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    UpstreamGatewayError,
    ValidationError,
    to_error,
)
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import DraftInvoiceRequest, GatewayInvoice, PaymentGateway
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.app.repositories.client_repository import ClientRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.project_repository import ProjectRepository
from src.domain.billing_period import BillingPeriod
from src.domain.client import Client
from src.domain.invoice import Invoice, InvoiceStatus
from src.domain.invoice_line import InvoiceLineItem, LineType
from src.domain.pending_invoice_item import PendingInvoiceItem, PendingItemSourceType, PendingItemStatus
from src.domain.project import CollectionMethod, PaymentMethodType, Project
from .billing_calculator import CalculationResult, DraftLine, apply_payment_method_adjustments
from .pending_item_ledger import PendingItemLedger
from .settings import BillingSettings
from .dtos import ComposeInvoiceCommandDTO, InvoiceResponseDTO

logger = logging.getLogger(__name__)

DUE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_due_date(value: Optional[str]) -> date:
    """
    Parse a YYYY-MM-DD calendar date

    Raises:
        ValidationError: Missing or malformed date
    """
    if not value:
        raise ValidationError('due_date (YYYY-MM-DD) is required when collection_method is "send_invoice"')
    if not DUE_DATE_PATTERN.match(value):
        raise ValidationError("due_date is invalid. Expected format: YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError("due_date is invalid. Expected format: YYYY-MM-DD")


def line_type_for(item: PendingInvoiceItem) -> LineType:
    if item.source_type == PendingItemSourceType.USAGE:
        return LineType.USAGE
    return LineType.PROJECT


class ComposeDraftInvoice:
    """
    Use Case: Compose a draft invoice for a billing period

    Business Rules:
    1. Period, project and client must belong to the caller
    2. Explicit pending items must all be pending and belong to the project
    3. Without explicit items, all pending items of the period are used;
       usage events not yet queued are queued first
    4. Empty invoices are rejected; send_invoice requires a due date.
       Both checks run before any gateway call
    5. send_invoice is priced as offline (no card fee, no ACH discount)
    6. Every included pending item is marked billed exactly once

    Flow:
    1. Resolve period, project and client
    2. Collect pending items and build draft lines
    3. Validate and price the lines
    4. Ensure the gateway customer (written back to client and project)
    5. Create the gateway draft and its line items
    6. Persist invoice and lines, mark pending items billed, commit
    7. On failure after step 5: rollback and delete the gateway draft
    """

    def __init__(
        self,
        uow: UnitOfWork,
        billing_period_repo: BillingPeriodRepository,
        project_repo: ProjectRepository,
        client_repo: ClientRepository,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
        ledger: PendingItemLedger,
        gateway: PaymentGateway,
        settings: BillingSettings,
    ):
        self.uow = uow
        self.billing_period_repo = billing_period_repo
        self.project_repo = project_repo
        self.client_repo = client_repo
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo
        self.ledger = ledger
        self.gateway = gateway
        self.settings = settings

    async def execute(self, command: ComposeInvoiceCommandDTO) -> Result[InvoiceResponseDTO]:
        """
        Execute draft invoice composition

        Args:
            command: ComposeInvoiceCommandDTO with period, items and lines

        Returns:
            Result[InvoiceResponseDTO]: The draft invoice with its line items
        """
        gateway_invoice_id: Optional[str] = None
        try:
            # Step 1: Resolve period, project and client
            period, project, client = await self._resolve_records(command)

            # Step 2: Collect pending items and build draft lines
            items = await self._collect_pending_items(command, project, period)
            draft_lines = self._build_lines(command, project, period, items)

            # Step 3: Validate and price
            if not draft_lines:
                raise ValidationError("Invoice has no line items")

            due_date = None
            if command.collection_method == CollectionMethod.SEND_INVOICE:
                due_date = parse_due_date(command.due_date)

            policy = self.settings.pricing_policy(
                project,
                collection_method=command.collection_method,
                show_processing_fee_line=command.include_processing_fee,
            )
            calculation = apply_payment_method_adjustments(draft_lines, policy)

            # Step 4: Ensure gateway customer
            customer_id = await self._ensure_customer(client, project)

            # Re-select the items under lock; anything claimed meanwhile is a conflict
            item_ids = [item.id for item in items]
            if item_ids:
                locked = await self.ledger.get_items(
                    item_ids, created_by=command.created_by, for_update=True
                )
                if len([item for item in locked if item.status == PendingItemStatus.PENDING]) != len(item_ids):
                    raise ConflictError("Pending items changed while composing the invoice")

            # Step 5: Gateway draft and lines
            subscription_id = project.gateway_subscription_id if command.include_retainer else None
            gateway_invoice = await self._create_gateway_draft(
                customer_id, subscription_id, command, project, client, period, due_date, item_ids
            )
            gateway_invoice_id = gateway_invoice.id

            for line in calculation.lines:
                line_metadata = {"line_type": line.line_type.value, "billing_period_id": period.id}
                if line.pending_item_id:
                    line_metadata["pending_item_id"] = line.pending_item_id
                if line.metadata.get("manual_entry"):
                    line_metadata["manual_entry"] = "true"
                await self.gateway.add_invoice_line(
                    gateway_invoice_id=gateway_invoice.id,
                    customer_id=customer_id,
                    description=line.description,
                    amount_cents=line.amount_cents,
                    metadata=line_metadata,
                )

            # Step 6: Persist locally
            invoice, lines = await self._persist(
                command, project, client, period, gateway_invoice, customer_id,
                subscription_id, calculation, policy.payment_method_type, items, due_date,
            )
            await self.uow.commit()

            logger.info(
                f"Composed draft invoice {invoice.invoice_number} ({gateway_invoice.id}) for project "
                f"{project.id}: {len(lines)} lines, {len(items)} pending items, total {invoice.total_cents}"
            )
            return Return.ok(InvoiceResponseDTO.from_entity(invoice, lines))

        except BillingError as e:
            await self._abort(gateway_invoice_id, e)
            return Return.err(to_error(e))
        except SQLAlchemyError as e:
            await self._abort(gateway_invoice_id, e)
            return Return.err(to_error(PersistenceError("Failed to persist invoice", reason=str(e))))
        except Exception as e:
            await self._abort(gateway_invoice_id, e)
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to compose invoice",
                    reason=str(e),
                )
            )

    async def _resolve_records(self, command: ComposeInvoiceCommandDTO):
        period = await self.billing_period_repo.get_by_id(command.billing_period_id, command.created_by)
        if not period:
            raise NotFoundError("Billing period not found")

        project = await self.project_repo.get_by_id(period.project_id, command.created_by)
        if not project:
            raise NotFoundError("Project not found")

        client_id = period.client_id or project.client_id
        if not client_id:
            raise ValidationError("Project must be linked to a client before invoicing")

        client = await self.client_repo.get_by_id(client_id, command.created_by)
        if not client:
            raise NotFoundError("Client not found")

        return period, project, client

    async def _collect_pending_items(
        self,
        command: ComposeInvoiceCommandDTO,
        project: Project,
        period: BillingPeriod,
    ) -> List[PendingInvoiceItem]:
        if command.pending_item_ids:
            requested = list(dict.fromkeys(command.pending_item_ids))
            items = await self.ledger.get_items(requested, created_by=command.created_by)
            eligible = [
                item for item in items
                if item.status == PendingItemStatus.PENDING and item.project_id == project.id
            ]
            if len(eligible) != len(requested):
                raise ValidationError(
                    "One or more pending items are already billed or missing",
                    reason=f"{len(eligible)} of {len(requested)} requested items are pending for this project",
                )
            return eligible

        items = await self.ledger.list_pending(project.id, command.created_by, billing_period_id=period.id)
        if not items:
            items = await self.ledger.queue_usage_events(period, command.created_by)
        return items

    def _build_lines(
        self,
        command: ComposeInvoiceCommandDTO,
        project: Project,
        period: BillingPeriod,
        items: List[PendingInvoiceItem],
    ) -> List[DraftLine]:
        lines: List[DraftLine] = []

        if command.include_retainer and project.base_retainer_cents > 0:
            lines.append(
                DraftLine(
                    line_type=LineType.BASE_SUBSCRIPTION,
                    description=f"{project.name} Monthly Retainer",
                    quantity=Decimal("1"),
                    unit_price_cents=project.base_retainer_cents,
                    metadata={"retainer": True},
                )
            )

        for item in items:
            metadata = {"pending_item_id": item.id, "source_type": item.source_type.value}
            if item.source_ref_id:
                metadata["source_ref_id"] = item.source_ref_id
            lines.append(
                DraftLine(
                    line_type=line_type_for(item),
                    description=item.description,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    metadata=metadata,
                )
            )

        for manual in command.manual_lines:
            lines.append(
                DraftLine(
                    line_type=LineType.PROJECT,
                    description=manual.description.strip(),
                    quantity=manual.quantity,
                    unit_price_cents=manual.unit_price_cents,
                    metadata={"manual_entry": True},
                )
            )

        return lines

    async def _ensure_customer(self, client: Client, project: Project) -> str:
        """
        Reuse, recreate or create the gateway customer for the client

        The resolved id is written back to client and project and committed
        right away so a later failure does not orphan the customer.
        """
        name = client.display_name() or project.name
        metadata = {"client_id": client.id, "project_id": project.id}
        customer_id = client.gateway_customer_id or project.gateway_customer_id

        try:
            if customer_id:
                try:
                    await self.gateway.update_customer(
                        customer_id, name=name, email=client.email, phone=client.phone, metadata=metadata
                    )
                except UpstreamGatewayError as e:
                    if e.missing_resource != "customer":
                        raise
                    logger.warning(f"Gateway customer {customer_id} is gone, recreating for client {client.id}")
                    customer_id = None

            if not customer_id:
                customer_id = await self.gateway.create_customer(
                    name=name, email=client.email, phone=client.phone, metadata=metadata
                )
        except UpstreamGatewayError as e:
            if e.unreachable:
                raise
            raise InvalidStateError("Unable to prepare the billing customer", reason=e.reason) from e

        if not customer_id:
            raise InvalidStateError("Unable to prepare the billing customer")

        changed = False
        if client.gateway_customer_id != customer_id:
            client.gateway_customer_id = customer_id
            await self.client_repo.update(client)
            changed = True
        if project.gateway_customer_id != customer_id:
            project.gateway_customer_id = customer_id
            await self.project_repo.update(project)
            changed = True
        if changed:
            await self.uow.commit()

        return customer_id

    async def _create_gateway_draft(
        self,
        customer_id: str,
        subscription_id: Optional[str],
        command: ComposeInvoiceCommandDTO,
        project: Project,
        client: Client,
        period: BillingPeriod,
        due_date: Optional[date],
        item_ids: List[str],
    ) -> GatewayInvoice:
        description = command.memo or f"Services {period.period_start.isoformat()} → {period.period_end.isoformat()}"
        metadata = {
            "project_id": project.id,
            "client_id": client.id,
            "billing_period_id": period.id,
        }
        if item_ids:
            metadata["pending_item_ids"] = ",".join(item_ids)

        request = DraftInvoiceRequest(
            customer_id=customer_id,
            collection_method=command.collection_method.value,
            description=description,
            metadata=metadata,
            subscription_id=subscription_id,
            due_date=due_date,
        )
        try:
            return await self.gateway.create_draft_invoice(request)
        except UpstreamGatewayError as e:
            if not subscription_id or e.missing_resource != "subscription":
                raise
            logger.warning(
                f"Gateway subscription {subscription_id} missing for project {project.id}, "
                f"retrying invoice without it"
            )
            request.subscription_id = None
            return await self.gateway.create_draft_invoice(request)

    async def _persist(
        self,
        command: ComposeInvoiceCommandDTO,
        project: Project,
        client: Client,
        period: BillingPeriod,
        gateway_invoice: GatewayInvoice,
        customer_id: str,
        subscription_id: Optional[str],
        calculation: CalculationResult,
        payment_method_type: PaymentMethodType,
        items: List[PendingInvoiceItem],
        due_date: Optional[date],
    ):
        invoice_metadata = {
            "pending_item_ids": [item.id for item in items],
            "pending_item_count": len(items),
            "manual_line_count": len(command.manual_lines),
            "include_retainer": command.include_retainer,
        }
        if command.memo:
            invoice_metadata["memo"] = command.memo

        invoice = await self.invoice_repo.create(
            Invoice(
                invoice_number=await self.invoice_repo.generate_invoice_number(),
                project_id=project.id,
                client_id=client.id,
                billing_period_id=period.id,
                gateway_invoice_id=gateway_invoice.id,
                gateway_customer_id=customer_id,
                gateway_subscription_id=gateway_invoice.subscription_id or subscription_id,
                subtotal_cents=calculation.subtotal_cents,
                tax_cents=0,
                processing_fee_cents=calculation.processing_fee_cents,
                total_cents=calculation.total_cents,
                net_amount_cents=calculation.total_cents,
                payment_method_type=payment_method_type,
                collection_method=command.collection_method,
                due_date=due_date,
                status=InvoiceStatus.DRAFT,
                hosted_url=gateway_invoice.hosted_url,
                pdf_url=gateway_invoice.pdf_url,
                metadata_json=invoice_metadata,
                created_by=command.created_by,
            )
        )

        lines = await self.invoice_line_repo.create_many(
            [
                InvoiceLineItem(
                    invoice_id=invoice.id,
                    line_type=line.line_type,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    amount_cents=line.amount_cents,
                    sort_order=index,
                    metadata_json={**line.metadata, "billing_period_id": period.id},
                    pending_source_item_id=line.pending_item_id,
                    created_by=command.created_by,
                )
                for index, line in enumerate(calculation.lines)
            ]
        )

        line_ids: Dict[str, str] = {
            line.pending_source_item_id: line.id for line in lines if line.pending_source_item_id
        }
        await self.ledger.mark_billed(
            [item.id for item in items], invoice.id, line_ids, created_by=command.created_by
        )

        return invoice, lines

    async def _abort(self, gateway_invoice_id: Optional[str], error: Exception) -> None:
        await self.uow.rollback()
        if not gateway_invoice_id:
            logger.warning(f"Invoice composition failed before reaching the gateway: {error}")
            return

        logger.error(f"Invoice composition failed after gateway draft {gateway_invoice_id}: {error}")
        try:
            await self.gateway.delete_draft_invoice(gateway_invoice_id)
            logger.info(f"Deleted gateway draft {gateway_invoice_id} after failed composition")
        except UpstreamGatewayError as cleanup_error:
            logger.error(f"Failed to delete gateway draft {gateway_invoice_id}: {cleanup_error}")
