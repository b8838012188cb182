"""VoidPendingItem Use Case"""

import logging
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, NotFoundError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.pending_invoice_item_repository import PendingInvoiceItemRepository
from .pending_item_ledger import PendingItemLedger
from .dtos import PendingItemResponseDTO

logger = logging.getLogger(__name__)


class VoidPendingItem:
    """
    Use Case: Void a pending item

    Business Rules:
    1. Item must belong to the caller
    2. Billed items cannot be voided (CONFLICT)
    3. Voiding an already voided item is a no-op
    """

    def __init__(
        self,
        uow: UnitOfWork,
        pending_item_repo: PendingInvoiceItemRepository,
        ledger: PendingItemLedger,
    ):
        self.uow = uow
        self.pending_item_repo = pending_item_repo
        self.ledger = ledger

    async def execute(self, item_id: str, created_by: str) -> Result[PendingItemResponseDTO]:
        try:
            await self.ledger.mark_voided([item_id], created_by=created_by)
            await self.uow.commit()

            item = await self.pending_item_repo.get_by_id(item_id, created_by)
            if not item:
                raise NotFoundError(f"Pending item {item_id} not found")

            logger.info(f"Voided pending item {item_id}")
            return Return.ok(PendingItemResponseDTO.from_entity(item))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to void pending item",
                    reason=str(e),
                )
            )
