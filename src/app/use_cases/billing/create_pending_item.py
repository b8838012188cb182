"""CreatePendingItem Use Case

Queues a manual charge or a completed task for the next invoice.
"""

import logging
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, NotFoundError, ValidationError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.app.repositories.project_repository import ProjectRepository
from src.domain.pending_invoice_item import PendingInvoiceItem, PendingItemSourceType
from .pending_item_ledger import PendingItemLedger
from .dtos import CreatePendingItemCommandDTO, PendingItemResponseDTO

logger = logging.getLogger(__name__)

CREATABLE_SOURCE_TYPES = (PendingItemSourceType.MANUAL, PendingItemSourceType.TASK)


class CreatePendingItem:
    """
    Use Case: Create a manual or task pending item

    Business Rules:
    1. source_type is manual or task (usage items come from usage import)
    2. Project must belong to the caller
    3. A billing period tag must reference a period of the same project
    4. amount_cents = round(quantity * unit_price_cents)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        project_repo: ProjectRepository,
        billing_period_repo: BillingPeriodRepository,
        ledger: PendingItemLedger,
    ):
        self.uow = uow
        self.project_repo = project_repo
        self.billing_period_repo = billing_period_repo
        self.ledger = ledger

    async def execute(self, command: CreatePendingItemCommandDTO) -> Result[PendingItemResponseDTO]:
        try:
            try:
                source_type = PendingItemSourceType(command.source_type)
            except ValueError:
                raise ValidationError(f"Unsupported source_type '{command.source_type}'")
            if source_type not in CREATABLE_SOURCE_TYPES:
                raise ValidationError("Usage items are created through usage import")

            project = await self.project_repo.get_by_id(command.project_id, command.created_by)
            if not project:
                raise NotFoundError("Project not found")

            metadata = dict(command.metadata or {})
            if command.billing_period_id:
                period = await self.billing_period_repo.get_by_id(command.billing_period_id, command.created_by)
                if not period or period.project_id != project.id:
                    raise ValidationError("Billing period does not belong to this project")
                metadata["billing_period_id"] = period.id

            item = await self.ledger.enqueue(
                PendingInvoiceItem(
                    project_id=project.id,
                    client_id=command.client_id or project.client_id,
                    source_type=source_type,
                    source_ref_id=command.source_ref_id,
                    description=command.description,
                    quantity=command.quantity,
                    unit_price_cents=command.unit_price_cents,
                    metadata_json=metadata or None,
                    created_by=command.created_by,
                )
            )
            await self.uow.commit()

            logger.info(f"Queued {source_type.value} pending item {item.id} ({item.amount_cents} cents) for project {project.id}")
            return Return.ok(PendingItemResponseDTO.from_entity(item))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to create pending item",
                    reason=str(e),
                )
            )
