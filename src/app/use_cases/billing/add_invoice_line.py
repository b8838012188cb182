"""AddInvoiceLine Use Case

Appends a manual line to a draft invoice, at the gateway and in the local
mirror.
"""

import logging
from sqlalchemy.exc import SQLAlchemyError
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, InvalidStateError, NotFoundError, PersistenceError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoice_line_repository import InvoiceLineRepository
from src.domain.invoice import InvoiceStatus
from src.domain.invoice_line import InvoiceLineItem, LineType
from .billing_calculator import DraftLine, calculate_line
from .dtos import AddInvoiceLineCommandDTO, InvoiceResponseDTO

logger = logging.getLogger(__name__)


class AddInvoiceLine:
    """
    Use Case: Add a manual line to a draft invoice

    Business Rules:
    1. Invoice must belong to the caller, be a draft and have a gateway customer
    2. The line is priced like a compose-time manual line (project type,
       negative unit price for credits) and appended after the existing lines
    3. subtotal moves by the line amount and total is re-summed from it and the
       existing adjustment lines; the processing fee and ACH discount are not repriced
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

    async def execute(self, command: AddInvoiceLineCommandDTO) -> Result[InvoiceResponseDTO]:
        try:
            invoice = await self.invoice_repo.get_by_id(command.invoice_id, command.created_by)
            if not invoice:
                raise NotFoundError(f"Invoice {command.invoice_id} not found")
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(
                    f"Lines can only be added to draft invoices (invoice is {invoice.status.value})"
                )
            if not invoice.gateway_customer_id:
                raise InvalidStateError("Invoice has no gateway customer")

            line = calculate_line(
                DraftLine(
                    line_type=LineType.PROJECT,
                    description=command.description.strip(),
                    quantity=command.quantity,
                    unit_price_cents=command.unit_price_cents,
                    metadata={"manual_entry": True},
                )
            )
            existing = await self.invoice_line_repo.get_by_invoice_id(invoice.id)

            await self.gateway.add_invoice_line(
                gateway_invoice_id=invoice.gateway_invoice_id,
                customer_id=invoice.gateway_customer_id,
                description=line.description,
                amount_cents=line.amount_cents,
                metadata={"line_type": line.line_type.value, "manual_entry": "true"},
            )

            await self.invoice_line_repo.create_many(
                [
                    InvoiceLineItem(
                        invoice_id=invoice.id,
                        line_type=line.line_type,
                        description=line.description,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                        amount_cents=line.amount_cents,
                        sort_order=max((item.sort_order for item in existing), default=-1) + 1,
                        metadata_json=dict(line.metadata),
                        created_by=command.created_by,
                    )
                ]
            )

            adjustments_cents = sum(
                item.amount_cents for item in existing if (item.metadata_json or {}).get("adjustment")
            )
            invoice.subtotal_cents += line.amount_cents
            invoice.total_cents = max(0, invoice.subtotal_cents + adjustments_cents)
            invoice.net_amount_cents = invoice.total_cents
            invoice = await self.invoice_repo.update(invoice)
            await self.uow.commit()

            logger.info(
                f"Added line ({line.amount_cents} cents) to draft invoice {invoice.invoice_number}, "
                f"total now {invoice.total_cents}"
            )
            lines = await self.invoice_line_repo.get_by_invoice_id(invoice.id)
            return Return.ok(InvoiceResponseDTO.from_entity(invoice, lines))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except SQLAlchemyError as e:
            await self.uow.rollback()
            logger.error(f"Line added at the gateway but not persisted for invoice {command.invoice_id}: {e}")
            return Return.err(to_error(PersistenceError("Failed to persist invoice line", reason=str(e))))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to add invoice line",
                    reason=str(e),
                )
            )
