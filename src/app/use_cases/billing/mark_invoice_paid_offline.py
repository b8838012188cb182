"""MarkInvoicePaidOffline Use Case

Records payment received outside the gateway (check, wire, cash).
"""

import logging
from datetime import datetime
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, InvalidStateError, NotFoundError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.domain.invoice import InvoiceStatus
from src.domain.project import PaymentMethodType
from .dtos import MarkPaidOfflineCommandDTO, InvoiceResponseDTO

logger = logging.getLogger(__name__)


class MarkInvoicePaidOffline:
    """
    Use Case: Mark an invoice paid offline

    Business Rules:
    1. Invoice must belong to the caller
    2. Void invoices cannot be paid; paid invoices are returned unchanged
    3. net_amount_cents becomes the amount received (default: total)
    4. Payment notes and date are kept in metadata
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo

    async def execute(self, command: MarkPaidOfflineCommandDTO) -> Result[InvoiceResponseDTO]:
        try:
            invoice = await self.invoice_repo.get_by_id(command.invoice_id, command.created_by)
            if not invoice:
                raise NotFoundError(f"Invoice {command.invoice_id} not found")
            if invoice.status == InvoiceStatus.VOID:
                raise InvalidStateError("Void invoices cannot be marked paid")

            if invoice.status != InvoiceStatus.PAID:
                paid_on = command.paid_on or datetime.utcnow().date()
                metadata = dict(invoice.metadata_json or {})
                metadata["paid_offline"] = True
                metadata["paid_at"] = paid_on.isoformat()
                if command.notes:
                    metadata["payment_notes"] = command.notes

                invoice.status = InvoiceStatus.PAID
                invoice.payment_method_type = PaymentMethodType.OFFLINE
                invoice.payment_method_used = "offline"
                invoice.processing_fee_cents = 0
                invoice.net_amount_cents = (
                    command.amount_received_cents
                    if command.amount_received_cents is not None
                    else invoice.total_cents
                )
                invoice.metadata_json = metadata

                invoice = await self.invoice_repo.update(invoice)
                await self.uow.commit()
                logger.info(f"Invoice {invoice.invoice_number} marked paid offline ({invoice.net_amount_cents} cents)")

            lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
            return Return.ok(InvoiceResponseDTO.from_entity(invoice, lines))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to mark invoice paid",
                    reason=str(e),
                )
            )
