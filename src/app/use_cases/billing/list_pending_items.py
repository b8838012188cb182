"""ListPendingItems Use Case"""

from typing import List, Optional
from src.libs.result import Result, Return, Error
from src.app.repositories.pending_invoice_item_repository import PendingInvoiceItemRepository
from src.domain.pending_invoice_item import PendingItemStatus
from .dtos import PendingItemResponseDTO


class ListPendingItems:
    """
    Use Case: List pending invoice items

    Filters by project, client and status; newest first.
    """

    def __init__(self, pending_item_repo: PendingInvoiceItemRepository):
        self.pending_item_repo = pending_item_repo

    async def execute(
        self,
        created_by: str,
        project_id: Optional[str] = None,
        client_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Result[List[PendingItemResponseDTO]]:
        status_filter = None
        if status:
            try:
                status_filter = PendingItemStatus(status)
            except ValueError:
                return Return.err(
                    Error(
                        code="VALIDATION_ERROR",
                        message=f"Unsupported status '{status}'",
                        reason="Expected one of: pending, billed, voided",
                    )
                )

        try:
            items = await self.pending_item_repo.list_items(
                created_by=created_by,
                project_id=project_id,
                client_id=client_id,
                status=status_filter,
                limit=limit,
            )
            return Return.ok([PendingItemResponseDTO.from_entity(item) for item in items])

        except Exception as e:
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to list pending items",
                    reason=str(e),
                )
            )
