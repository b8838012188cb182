"""Pending Item API Routes

FastAPI routes for the pending invoice item queue.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.billing_request import CreatePendingItemRequestSchema
from src.app.use_cases.billing.dtos import CreatePendingItemCommandDTO, PendingItemResponseDTO
from src.app.use_cases.billing.create_pending_item import CreatePendingItem
from src.app.use_cases.billing.list_pending_items import ListPendingItems
from src.app.use_cases.billing.void_pending_item import VoidPendingItem
from src.adapter.repositories.billing_period_repository import SqlAlchemyBillingPeriodRepository
from src.adapter.repositories.pending_invoice_item_repository import SqlAlchemyPendingInvoiceItemRepository
from src.adapter.repositories.project_repository import SqlAlchemyProjectRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import build_pending_item_ledger, get_current_user_id, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/billing/pending-items", tags=["Pending Items"])


@router.get("", response_model=List[PendingItemResponseDTO])
async def list_pending_items(
    project_id: Optional[str] = None,
    client_id: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    List pending invoice items, newest first.

    **Query parameters:**
    - `project_id` (optional): Only items of this project
    - `client_id` (optional): Only items of this client
    - `status` (optional): pending, billed or voided
    - `limit` (optional): Maximum number of items
    """
    use_case = ListPendingItems(SqlAlchemyPendingInvoiceItemRepository(session))
    result = await use_case.execute(
        created_by=user_id,
        project_id=project_id,
        client_id=client_id,
        status=status_filter,
        limit=limit,
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "",
    response_model=PendingItemResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def create_pending_item(
    request: CreatePendingItemRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Queue a manual or task item for the next invoice of its project.

    **Returns:**
    - 201: Item queued as pending
    - 400: Invalid input or client mismatch
    - 404: Project or billing period not found
    """
    use_case = CreatePendingItem(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyProjectRepository(session),
        SqlAlchemyBillingPeriodRepository(session),
        build_pending_item_ledger(session),
    )
    result = await use_case.execute(
        CreatePendingItemCommandDTO(created_by=user_id, **request.model_dump())
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{item_id}/void",
    response_model=PendingItemResponseDTO,
    responses={
        409: {
            "description": "Item already billed",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "CONFLICT",
                            "message": "Pending item 123 is already billed"
                        }
                    }
                }
            }
        }
    }
)
async def void_pending_item(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    use_case = VoidPendingItem(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyPendingInvoiceItemRepository(session),
        build_pending_item_ledger(session),
    )
    result = await use_case.execute(item_id, user_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value
