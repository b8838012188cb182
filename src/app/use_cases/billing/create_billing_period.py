"""CreateBillingPeriod Use Case

Opens a billing period (date range) for a project.
"""

import logging
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, NotFoundError, ValidationError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.billing_period_repository import BillingPeriodRepository
from src.app.repositories.project_repository import ProjectRepository
from src.domain.billing_period import BillingPeriod, BillingPeriodStatus
from .dtos import CreateBillingPeriodCommandDTO, BillingPeriodResponseDTO

logger = logging.getLogger(__name__)


class CreateBillingPeriod:
    """
    Use Case: Create a billing period

    Business Rules:
    1. period_end must not precede period_start
    2. Project must belong to the caller
    3. An explicit client must be the project's client
    4. Period starts as draft
    """

    def __init__(
        self,
        uow: UnitOfWork,
        billing_period_repo: BillingPeriodRepository,
        project_repo: ProjectRepository,
    ):
        self.uow = uow
        self.billing_period_repo = billing_period_repo
        self.project_repo = project_repo

    async def execute(self, command: CreateBillingPeriodCommandDTO) -> Result[BillingPeriodResponseDTO]:
        try:
            if command.period_end < command.period_start:
                raise ValidationError("period_end must be on or after period_start")

            project = await self.project_repo.get_by_id(command.project_id, command.created_by)
            if not project:
                raise NotFoundError("Project not found")

            client_id = command.client_id or project.client_id
            if command.client_id and project.client_id and command.client_id != project.client_id:
                raise ValidationError("Client does not match the project's client")

            period = await self.billing_period_repo.create(
                BillingPeriod(
                    project_id=project.id,
                    client_id=client_id,
                    period_start=command.period_start,
                    period_end=command.period_end,
                    status=BillingPeriodStatus.DRAFT,
                    notes=command.notes,
                    created_by=command.created_by,
                )
            )
            await self.uow.commit()

            logger.info(
                f"Created billing period {period.id} for project {project.id} "
                f"({period.period_start} - {period.period_end})"
            )
            return Return.ok(BillingPeriodResponseDTO.from_entity(period))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to create billing period",
                    reason=str(e),
                )
            )
