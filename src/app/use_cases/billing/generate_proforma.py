"""GenerateProforma Use Case

Preview PDF for a draft invoice, before anything is sent to the client.
"""

import base64
import logging
from datetime import datetime
from typing import List, Optional
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, InvalidStateError, NotFoundError, to_error
from src.app.repositories.client_repository import ClientRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.app.services.pdf_service import PdfService, ProformaDocument, ProformaRow
from src.domain.client import Client
from src.domain.invoice import Invoice, InvoiceStatus
from src.domain.invoice_line import InvoiceLineItem, LineType
from .settings import BillingSettings
from .dtos import ProformaInvoiceResponseDTO, InvoiceLineDTO

logger = logging.getLogger(__name__)


def bill_to_lines(invoice: Invoice, client: Optional[Client]) -> List[str]:
    if client is None:
        return [f"Project {invoice.project_id}"]
    lines = [client.display_name() or client.id]
    if client.company_name and client.company_name != lines[0]:
        lines.append(client.company_name)
    lines.extend(filter(None, [client.email, client.phone]))
    return lines


class GenerateProforma:
    """
    Use Case: Render a proforma for a draft invoice

    Business Rules:
    1. Only the owner's draft invoices can be previewed
    2. The processing fee is printed with the totals, not as a row
    3. The PDF is returned base64 encoded with the invoice totals
    """

    def __init__(
        self,
        invoice_repo: InvoiceRepository,
        invoice_line_repo: InvoiceLineRepository,
        client_repo: ClientRepository,
        pdf_service: PdfService,
        settings: BillingSettings,
    ):
        self.invoice_repo = invoice_repo
        self.invoice_line_repo = invoice_line_repo
        self.client_repo = client_repo
        self.pdf_service = pdf_service
        self.settings = settings

    async def execute(self, invoice_id: str, created_by: str) -> Result[ProformaInvoiceResponseDTO]:
        try:
            invoice = await self.invoice_repo.get_by_id(invoice_id, created_by)
            if not invoice:
                raise NotFoundError(f"Invoice {invoice_id} not found")
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(
                    f"Proforma is only available for draft invoices (invoice is {invoice.status.value})"
                )

            lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
            client = None
            if invoice.client_id:
                client = await self.client_repo.get_by_id(invoice.client_id, created_by)

            document = self._document(invoice, lines, client)
            pdf_bytes = self.pdf_service.render_proforma(document)

        except BillingError as e:
            return Return.err(to_error(e))
        except Exception as e:
            logger.error(f"Proforma rendering failed for invoice {invoice_id}: {e}")
            return Return.err(
                Error(
                    code="GENERATE_PROFORMA_FAILED",
                    message="Failed to generate proforma invoice",
                    reason=str(e),
                )
            )

        return Return.ok(
            ProformaInvoiceResponseDTO(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                status=invoice.status.value,
                subtotal_cents=invoice.subtotal_cents,
                processing_fee_cents=invoice.processing_fee_cents,
                total_cents=invoice.total_cents,
                line_items=[InvoiceLineDTO.from_entity(line) for line in lines],
                pdf_base64=base64.b64encode(pdf_bytes).decode("ascii"),
                generated_at=datetime.utcnow(),
            )
        )

    def _document(
        self, invoice: Invoice, lines: List[InvoiceLineItem], client: Optional[Client]
    ) -> ProformaDocument:
        return ProformaDocument(
            issuer_name=self.settings.company_name,
            issuer_address=self.settings.company_address,
            invoice_number=invoice.invoice_number,
            status=invoice.status.value,
            collection_method=invoice.collection_method.value,
            issued_at=invoice.created_at,
            due_date=invoice.due_date,
            bill_to=bill_to_lines(invoice, client),
            rows=[
                ProformaRow(
                    description=line.description,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    amount_cents=line.amount_cents,
                )
                for line in lines
                if line.line_type != LineType.PROCESSING_FEE
            ],
            subtotal_cents=invoice.subtotal_cents,
            processing_fee_cents=invoice.processing_fee_cents,
            tax_cents=invoice.tax_cents,
            total_cents=invoice.total_cents,
        )
