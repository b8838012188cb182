"""Billing Period API Routes

FastAPI routes for billing periods and usage imports.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.billing_request import CreateBillingPeriodRequestSchema, UsageImportRequestSchema
from src.app.use_cases.billing.dtos import (
    BillingPeriodResponseDTO,
    CreateBillingPeriodCommandDTO,
    ImportUsageCommandDTO,
    UsageImportResponseDTO,
)
from src.app.use_cases.billing.create_billing_period import CreateBillingPeriod
from src.app.use_cases.billing.get_billing_period import GetBillingPeriod
from src.app.use_cases.billing.import_usage import ImportUsage
from src.app.use_cases.billing.list_billing_periods import ListBillingPeriods
from src.adapter.repositories.billing_period_repository import SqlAlchemyBillingPeriodRepository
from src.adapter.repositories.project_repository import SqlAlchemyProjectRepository
from src.adapter.repositories.usage_event_repository import SqlAlchemyUsageEventRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import build_pending_item_ledger, get_current_user_id, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/billing/billing-periods", tags=["Billing Periods"])


@router.post(
    "",
    response_model=BillingPeriodResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def create_billing_period(
    request: CreateBillingPeriodRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Open a billing period for a project.

    **Returns:**
    - 201: Billing period created
    - 400: Invalid range or client mismatch
    - 404: Project not found
    """
    use_case = CreateBillingPeriod(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyBillingPeriodRepository(session),
        SqlAlchemyProjectRepository(session),
    )
    result = await use_case.execute(
        CreateBillingPeriodCommandDTO(
            created_by=user_id,
            project_id=request.project_id,
            client_id=request.client_id,
            period_start=request.period_start,
            period_end=request.period_end,
            notes=request.notes,
        )
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("", response_model=List[BillingPeriodResponseDTO])
async def list_billing_periods(
    project_id: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    use_case = ListBillingPeriods(SqlAlchemyBillingPeriodRepository(session), SqlAlchemyProjectRepository(session))
    result = await use_case.execute(project_id, user_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.get("/{period_id}", response_model=BillingPeriodResponseDTO)
async def get_billing_period(
    period_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    result = await GetBillingPeriod(SqlAlchemyBillingPeriodRepository(session)).execute(period_id, user_id)

    if result.is_err():
        raise ClientError(result.error)
    return result.value


@router.post(
    "/{period_id}/usage-imports",
    response_model=UsageImportResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {
            "description": "No valid rows",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "VALIDATION_ERROR",
                            "message": "No valid usage rows to import"
                        }
                    }
                }
            }
        }
    }
)
async def import_usage(
    period_id: str,
    request: UsageImportRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Import a batch of normalized usage rows into a billing period.

    The batch becomes one usage event and one pending item tagged with the
    period. Invalid rows are skipped and reported in `warnings`.
    """
    use_case = ImportUsage(
        uow=SqlAlchemyUnitOfWork(session),
        billing_period_repo=SqlAlchemyBillingPeriodRepository(session),
        project_repo=SqlAlchemyProjectRepository(session),
        usage_event_repo=SqlAlchemyUsageEventRepository(session),
        ledger=build_pending_item_ledger(session),
    )
    result = await use_case.execute(
        ImportUsageCommandDTO(
            created_by=user_id,
            billing_period_id=period_id,
            metric_type=request.metric_type,
            description=request.description,
            rows=request.rows,
        )
    )

    if result.is_err():
        raise ClientError(result.error)
    return result.value
