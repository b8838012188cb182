"""Invoice API Routes

FastAPI routes for invoice composition, draft editing and deletion,
finalization, offline payment and proforma generation.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
import base64
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.billing_request import (
    AddInvoiceLineRequestSchema,
    ComposeInvoiceRequestSchema,
    FinalizeInvoiceRequestSchema,
    MarkPaidOfflineRequestSchema,
)
from src.app.use_cases.billing.dtos import (
    AddInvoiceLineCommandDTO,
    ComposeInvoiceCommandDTO,
    DeleteDraftInvoiceCommandDTO,
    DeletedInvoiceResponseDTO,
    FinalizeInvoiceCommandDTO,
    InvoiceResponseDTO,
    ManualLineDTO,
    MarkPaidOfflineCommandDTO,
    ProformaInvoiceResponseDTO,
)
from src.app.use_cases.billing.add_invoice_line import AddInvoiceLine
from src.app.use_cases.billing.delete_draft_invoice import DeleteDraftInvoice
from src.app.use_cases.billing.generate_proforma import GenerateProforma
from src.app.use_cases.billing.get_invoice import GetInvoice
from src.app.use_cases.billing.list_invoices import ListInvoices
from src.app.use_cases.billing.mark_invoice_paid_offline import MarkInvoicePaidOffline
from src.app.use_cases.billing.settings import BillingSettings
from src.app.services.payment_gateway import PaymentGateway
from src.adapter.repositories.client_repository import SqlAlchemyClientRepository
from src.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from src.adapter.repositories.invoice_line_repository import SqlAlchemyInvoiceLineRepository
from src.adapter.services.pdf_service import ReportLabPdfService
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import (
    build_compose_invoice,
    build_finalize_invoice,
    build_pending_item_ledger,
    get_billing_settings,
    get_current_user_id,
    get_payment_gateway,
    get_session,
)
from src.api.error import ClientError

router = APIRouter(prefix="/billing/invoices", tags=["Invoices"])


def _proforma_use_case(session: AsyncSession, settings: BillingSettings) -> GenerateProforma:
    return GenerateProforma(
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyInvoiceLineRepository(session),
        SqlAlchemyClientRepository(session),
        ReportLabPdfService(),
        settings,
    )


@router.get("", response_model=List[InvoiceResponseDTO])
async def list_invoices(
    project_id: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    List invoices, newest first (without line items).

    **Query parameters:**
    - `project_id` (optional): Only invoices of this project
    - `status` (optional): draft, open, paid or void
    - `limit` / `offset` (optional): Pagination
    """
    result = await ListInvoices(SqlAlchemyInvoiceRepository(session)).execute(
        created_by=user_id,
        project_id=project_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/draft",
    response_model=InvoiceResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {
            "description": "Validation error",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "VALIDATION_ERROR",
                            "message": "One or more pending items are already billed or missing"
                        }
                    }
                }
            }
        },
        502: {
            "description": "Payment gateway failure",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "UPSTREAM_GATEWAY_ERROR",
                            "message": "Payment gateway rejected invoice creation"
                        }
                    }
                }
            }
        }
    }
)
async def compose_draft_invoice(
    request: ComposeInvoiceRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: BillingSettings = Depends(get_billing_settings),
):
    """
    Compose a draft invoice for a billing period.

    Includes the requested pending items (or every pending item of the period),
    the optional monthly retainer and manual lines. The draft is created at
    the payment gateway and mirrored locally; included items become billed.

    **Example request:**
    ```json
    {
      "billing_period_id": "5b0c3f4e-0d52-4d0e-8f1b-0a4a3f2f6b11",
      "include_retainer": true,
      "manual_lines": [{"description": "Onboarding", "quantity": "1", "unit_price_cents": 25000}],
      "collection_method": "send_invoice",
      "due_date": "2024-02-15"
    }
    ```

    **Returns:**
    - 201: Draft invoice with line items
    - 400: Invalid input, empty invoice, missing due date
    - 404: Period, project or client not found
    - 409: Items claimed concurrently or customer not ready
    - 502: Payment gateway failure
    """
    command = ComposeInvoiceCommandDTO(
        created_by=user_id,
        billing_period_id=request.billing_period_id,
        pending_item_ids=request.pending_item_ids,
        include_retainer=request.include_retainer,
        manual_lines=[ManualLineDTO(**line.model_dump()) for line in request.manual_lines],
        collection_method=request.collection_method,
        due_date=request.due_date,
        memo=request.memo,
        include_processing_fee=request.include_processing_fee,
    )

    result = await build_compose_invoice(session, gateway, settings).execute(command)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/{invoice_id}", response_model=InvoiceResponseDTO)
async def get_invoice(
    invoice_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    use_case = GetInvoice(SqlAlchemyInvoiceRepository(session), SqlAlchemyInvoiceLineRepository(session))
    result = await use_case.execute(invoice_id, user_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/{invoice_id}/finalize", response_model=InvoiceResponseDTO)
async def finalize_invoice(
    invoice_id: str,
    request: Optional[FinalizeInvoiceRequestSchema] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Finalize a draft invoice at the payment gateway.

    send_invoice invoices are emailed to the customer unless `send` is false.
    """
    command = FinalizeInvoiceCommandDTO(
        created_by=user_id,
        invoice_id=invoice_id,
        send=request.send if request else None,
    )
    result = await build_finalize_invoice(session, gateway).execute(command)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/{invoice_id}/mark-paid-offline", response_model=InvoiceResponseDTO)
async def mark_invoice_paid_offline(
    invoice_id: str,
    request: Optional[MarkPaidOfflineRequestSchema] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Record a payment received outside the gateway (check, wire, cash).

    **Returns:**
    - 200: Invoice marked paid (unchanged if it already was)
    - 404: Invoice not found
    - 409: Invoice is void
    """
    request = request or MarkPaidOfflineRequestSchema()
    use_case = MarkInvoicePaidOffline(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyInvoiceLineRepository(session),
    )
    result = await use_case.execute(
        MarkPaidOfflineCommandDTO(
            created_by=user_id,
            invoice_id=invoice_id,
            amount_received_cents=request.amount_received_cents,
            paid_on=request.paid_on,
            notes=request.notes,
        )
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post("/{invoice_id}/line-items", response_model=InvoiceResponseDTO)
async def add_invoice_line(
    invoice_id: str,
    request: AddInvoiceLineRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Append a manual line (negative unit price for a credit) to a draft invoice.

    **Returns:**
    - 200: Invoice with the new line and updated totals
    - 404: Invoice not found
    - 409: Invoice is not a draft
    """
    use_case = AddInvoiceLine(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyInvoiceLineRepository(session),
        gateway,
    )
    result = await use_case.execute(
        AddInvoiceLineCommandDTO(
            created_by=user_id,
            invoice_id=invoice_id,
            description=request.description,
            quantity=request.quantity,
            unit_price_cents=request.unit_price_cents,
        )
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.delete("/{invoice_id}", response_model=DeletedInvoiceResponseDTO)
async def delete_draft_invoice(
    invoice_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Delete a draft invoice at the gateway and locally.

    Pending items billed on the draft return to the queue.

    **Returns:**
    - 200: Invoice deleted
    - 404: Invoice not found
    - 409: Invoice is not a draft
    """
    use_case = DeleteDraftInvoice(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyInvoiceRepository(session),
        SqlAlchemyInvoiceLineRepository(session),
        build_pending_item_ledger(session),
        gateway,
    )
    result = await use_case.execute(DeleteDraftInvoiceCommandDTO(created_by=user_id, invoice_id=invoice_id))

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get(
    "/{invoice_id}/proforma",
    response_model=ProformaInvoiceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Invoice not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "NOT_FOUND",
                            "message": "Invoice 123 not found"
                        }
                    }
                }
            }
        },
        409: {
            "description": "Invalid invoice status",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INVALID_STATE",
                            "message": "Proforma is only available for draft invoices (invoice is open)"
                        }
                    }
                }
            }
        }
    }
)
async def get_proforma_invoice(
    invoice_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    settings: BillingSettings = Depends(get_billing_settings),
):
    """
    Generate a proforma invoice PDF for a draft invoice.

    The PDF is returned base64 encoded alongside the invoice totals.

    **Returns:**
    - 200: Proforma invoice generated successfully
    - 404: Invoice not found
    - 409: Invoice is not a draft
    """
    result = await _proforma_use_case(session, settings).execute(invoice_id, user_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get(
    "/{invoice_id}/proforma/pdf",
    responses={
        200: {
            "content": {"application/pdf": {}},
            "description": "PDF document"
        }
    }
)
async def download_proforma_invoice_pdf(
    invoice_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    settings: BillingSettings = Depends(get_billing_settings),
):
    """
    Download the proforma invoice as a PDF file.
    """
    result = await _proforma_use_case(session, settings).execute(invoice_id, user_id)

    if result.is_err():
        raise ClientError(result.error)

    pdf_bytes = base64.b64decode(result.value.pdf_base64)

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=proforma_{result.value.invoice_number}.pdf"
        }
    )
