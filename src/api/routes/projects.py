"""Project API Routes

FastAPI routes for a project's billing profile.
"""

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.billing_request import UpdateBillingProfileRequestSchema
from src.app.use_cases.billing.dtos import BillingProfileResponseDTO, UpdateBillingProfileCommandDTO
from src.app.use_cases.billing.update_billing_profile import UpdateBillingProfile
from src.adapter.repositories.project_repository import SqlAlchemyProjectRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_current_user_id, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/billing/projects", tags=["Projects"])


@router.patch("/{project_id}/billing-profile", response_model=BillingProfileResponseDTO)
async def update_billing_profile(
    project_id: str,
    request: UpdateBillingProfileRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Partially update a project's billing profile.

    Only fields present in the body are written. `billing_anchor_day` accepts
    1-28, or null to take the project out of the daily sweep.

    **Example request:**
    ```json
    {
      "payment_method_type": "ach",
      "auto_pay_enabled": true,
      "billing_anchor_day": 1
    }
    ```

    **Returns:**
    - 200: Updated billing profile
    - 400: Invalid enum value or anchor day
    - 404: Project not found
    """
    command = UpdateBillingProfileCommandDTO(
        created_by=user_id,
        project_id=project_id,
        **request.model_dump(exclude_unset=True),
    )

    use_case = UpdateBillingProfile(SqlAlchemyUnitOfWork(session), SqlAlchemyProjectRepository(session))
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)
    return result.value
