"""GetBillingPeriod Use Case"""

from src.libs.result import Result, Return, Error
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from .dtos import BillingPeriodResponseDTO


class GetBillingPeriod:
    def __init__(self, billing_period_repo: BillingPeriodRepository):
        self.billing_period_repo = billing_period_repo

    async def execute(self, period_id: str, created_by: str) -> Result[BillingPeriodResponseDTO]:
        try:
            period = await self.billing_period_repo.get_by_id(period_id, created_by)
            if not period:
                return Return.err(
                    Error(
                        code="NOT_FOUND",
                        message=f"Billing period {period_id} not found",
                    )
                )
            return Return.ok(BillingPeriodResponseDTO.from_entity(period))

        except Exception as e:
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to load billing period",
                    reason=str(e),
                )
            )
