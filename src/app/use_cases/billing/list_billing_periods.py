"""ListBillingPeriods Use Case"""

from typing import List
from src.libs.result import Result, Return, Error
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.app.repositories.project_repository import ProjectRepository
from .dtos import BillingPeriodResponseDTO


class ListBillingPeriods:
    """Billing periods of one project, newest first"""

    def __init__(self, billing_period_repo: BillingPeriodRepository, project_repo: ProjectRepository):
        self.billing_period_repo = billing_period_repo
        self.project_repo = project_repo

    async def execute(self, project_id: str, created_by: str) -> Result[List[BillingPeriodResponseDTO]]:
        try:
            project = await self.project_repo.get_by_id(project_id, created_by)
            if not project:
                return Return.err(Error(code="NOT_FOUND", message="Project not found"))

            periods = await self.billing_period_repo.list_by_project(project_id, created_by)
            return Return.ok([BillingPeriodResponseDTO.from_entity(period) for period in periods])

        except Exception as e:
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to list billing periods",
                    reason=str(e),
                )
            )
