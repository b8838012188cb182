"""FinalizeInvoice Use Case

Finalizes a draft invoice at the gateway (sending it for send_invoice
collection) and mirrors the result locally.
"""

import logging
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, InvalidStateError, NotFoundError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.domain.invoice import InvoiceStatus
from src.domain.project import CollectionMethod
from .dtos import FinalizeInvoiceCommandDTO, InvoiceResponseDTO

logger = logging.getLogger(__name__)


class FinalizeInvoice:
    """
    Use Case: Finalize a draft invoice

    Business Rules:
    1. Invoice must belong to the caller and be a draft
    2. send_invoice invoices are emailed after finalizing unless send=False
    3. Local status follows the gateway status (open, or paid when the
       gateway charged immediately)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
        gateway: PaymentGateway,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo
        self.gateway = gateway

    async def execute(self, command: FinalizeInvoiceCommandDTO) -> Result[InvoiceResponseDTO]:
        try:
            invoice = await self.invoice_repo.get_by_id(command.invoice_id, command.created_by)
            if not invoice:
                raise NotFoundError(f"Invoice {command.invoice_id} not found")
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(
                    f"Only draft invoices can be finalized. Current status: {invoice.status.value}"
                )

            send = command.send
            if send is None:
                send = invoice.collection_method == CollectionMethod.SEND_INVOICE

            gateway_invoice = await self.gateway.finalize_invoice(invoice.gateway_invoice_id, send=send)

            invoice.status = InvoiceStatus.from_gateway(gateway_invoice.status)
            invoice.hosted_url = gateway_invoice.hosted_url or invoice.hosted_url
            invoice.pdf_url = gateway_invoice.pdf_url or invoice.pdf_url
            if gateway_invoice.total_cents:
                invoice.subtotal_cents = gateway_invoice.subtotal_cents
                invoice.tax_cents = gateway_invoice.tax_cents
                invoice.total_cents = gateway_invoice.total_cents
            invoice.metadata_json = {**(invoice.metadata_json or {}), "sent": send}

            invoice = await self.invoice_repo.update(invoice)
            await self.uow.commit()

            lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
            logger.info(f"Finalized invoice {invoice.invoice_number} ({invoice.gateway_invoice_id}), sent={send}")
            return Return.ok(InvoiceResponseDTO.from_entity(invoice, lines))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to finalize invoice",
                    reason=str(e),
                )
            )
