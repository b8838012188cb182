"""ListInvoices Use Case"""

from typing import List, Optional
from src.libs.result import Result, Return, Error
from src.app.repositories.invoice_repository import InvoiceRepository
from src.domain.invoice import InvoiceStatus
from .dtos import InvoiceResponseDTO


class ListInvoices:
    """
    Use Case: List invoices

    Filters by project and status; newest first, without line items.
    """

    def __init__(self, invoice_repo: InvoiceRepository):
        self.invoice_repo = invoice_repo

    async def execute(
        self,
        created_by: str,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Result[List[InvoiceResponseDTO]]:
        status_filter = None
        if status:
            try:
                status_filter = InvoiceStatus(status)
            except ValueError:
                return Return.err(
                    Error(
                        code="VALIDATION_ERROR",
                        message=f"Unsupported status '{status}'",
                        reason="Expected one of: draft, open, paid, void",
                    )
                )

        try:
            invoices = await self.invoice_repo.list_invoices(
                created_by=created_by,
                project_id=project_id,
                status=status_filter,
                limit=limit,
                offset=offset,
            )
            return Return.ok([InvoiceResponseDTO.from_entity(invoice) for invoice in invoices])

        except Exception as e:
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to list invoices",
                    reason=str(e),
                )
            )
