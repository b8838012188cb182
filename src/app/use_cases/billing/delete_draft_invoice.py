"""DeleteDraftInvoice Use Case

Discards a draft invoice at the gateway and locally, returning the pending
items it billed to the queue.
"""

import logging
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, InvalidStateError, NotFoundError, UpstreamGatewayError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.domain.invoice import InvoiceStatus
from .pending_item_ledger import PendingItemLedger
from .dtos import DeleteDraftInvoiceCommandDTO, DeletedInvoiceResponseDTO

logger = logging.getLogger(__name__)


class DeleteDraftInvoice:
    """
    Use Case: Delete a draft invoice

    Business Rules:
    1. Invoice must belong to the caller and still be a draft
    2. The gateway draft is deleted first; one already gone at the gateway
       does not block the local delete
    3. Pending items billed on the invoice become pending again
    4. Lines and invoice are removed in the same transaction as the revert
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
        ledger: PendingItemLedger,
        gateway: PaymentGateway,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo
        self.ledger = ledger
        self.gateway = gateway

    async def execute(self, command: DeleteDraftInvoiceCommandDTO) -> Result[DeletedInvoiceResponseDTO]:
        try:
            invoice = await self.invoice_repo.get_by_id(command.invoice_id, command.created_by)
            if not invoice:
                raise NotFoundError(f"Invoice {command.invoice_id} not found")
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(
                    f"Only draft invoices can be deleted (invoice is {invoice.status.value})"
                )

            try:
                await self.gateway.delete_draft_invoice(invoice.gateway_invoice_id)
            except UpstreamGatewayError as e:
                if e.missing_resource != "invoice":
                    raise
                logger.warning(f"Gateway draft {invoice.gateway_invoice_id} already gone; deleting locally")

            lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
            item_ids = [line.pending_source_item_id for line in lines if line.pending_source_item_id]
            reverted = await self.ledger.revert_to_pending(item_ids, invoice.id, created_by=command.created_by)

            deleted = DeletedInvoiceResponseDTO(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                gateway_invoice_id=invoice.gateway_invoice_id,
                reverted_item_count=reverted,
            )
            await self.invoice_line_repo.delete_by_invoice_id(invoice.id)
            await self.invoice_repo.delete(invoice)
            await self.uow.commit()

            logger.info(
                f"Deleted draft invoice {deleted.invoice_number} ({deleted.gateway_invoice_id}), "
                f"{reverted} pending items returned to the queue"
            )
            return Return.ok(deleted)

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to delete invoice",
                    reason=str(e),
                )
            )
