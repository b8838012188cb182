"""GetInvoice Use Case"""

from src.libs.result import Result, Return, Error
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from .dtos import InvoiceResponseDTO


class GetInvoice:
    """Invoice with its line items, scoped to the caller"""

    def __init__(self, invoice_repo: InvoiceRepository, invoice_line_repo: InvoiceLineRepository):
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo

    async def execute(self, invoice_id: str, created_by: str) -> Result[InvoiceResponseDTO]:
        try:
            invoice = await self.invoice_repo.get_by_id(invoice_id, created_by)
            if not invoice:
                return Return.err(
                    Error(
                        code="NOT_FOUND",
                        message=f"Invoice {invoice_id} not found",
                    )
                )

            lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
            return Return.ok(InvoiceResponseDTO.from_entity(invoice, lines))

        except Exception as e:
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to load invoice",
                    reason=str(e),
                )
            )
