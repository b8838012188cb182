"""UpdateBillingProfile Use Case

Applies a partial update to a project's billing profile.
"""

import logging
from src.libs.result import Result, Return, Error
from src.app.errors import BillingError, NotFoundError, ValidationError, to_error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.project_repository import ProjectRepository
from src.domain.project import CollectionMethod, PaymentMethodType
from .dtos import UpdateBillingProfileCommandDTO, BillingProfileResponseDTO

logger = logging.getLogger(__name__)

MIN_ANCHOR_DAY = 1
MAX_ANCHOR_DAY = 28


class UpdateBillingProfile:
    """
    Use Case: Update a project's billing profile

    Business Rules:
    1. Project must belong to the caller
    2. payment_method_type in {card, ach, offline}
    3. billing_default_collection_method in {charge_automatically, send_invoice}
    4. billing_anchor_day in 1..28, or null to disable the sweep
    5. Retainer and ACH discount are non-negative
    6. Only fields present in the command are written
    """

    def __init__(self, uow: UnitOfWork, project_repo: ProjectRepository):
        self.uow = uow
        self.project_repo = project_repo

    async def execute(self, command: UpdateBillingProfileCommandDTO) -> Result[BillingProfileResponseDTO]:
        try:
            project = await self.project_repo.get_by_id(command.project_id, command.created_by)
            if not project:
                raise NotFoundError("Project not found")

            fields = command.model_fields_set - {"created_by", "project_id"}
            changes = {name: getattr(command, name) for name in fields}

            if "payment_method_type" in changes:
                changes["payment_method_type"] = self._parse_enum(
                    PaymentMethodType, changes["payment_method_type"], "payment_method_type"
                )
            if "billing_default_collection_method" in changes:
                changes["billing_default_collection_method"] = self._parse_enum(
                    CollectionMethod, changes["billing_default_collection_method"], "billing_default_collection_method"
                )
            if "billing_anchor_day" in changes:
                day = changes["billing_anchor_day"]
                if day is not None and not MIN_ANCHOR_DAY <= day <= MAX_ANCHOR_DAY:
                    raise ValidationError(
                        f"billing_anchor_day must be between {MIN_ANCHOR_DAY} and {MAX_ANCHOR_DAY}"
                    )
            for name in ("base_retainer_cents", "ach_discount_cents"):
                if name in changes:
                    if changes[name] is None or changes[name] < 0:
                        raise ValidationError(f"{name} must be a non-negative integer")
            for name in ("auto_pay_enabled", "subscription_enabled", "billing_auto_finalize"):
                if name in changes and changes[name] is None:
                    raise ValidationError(f"{name} cannot be null")

            for name, value in changes.items():
                setattr(project, name, value)

            project = await self.project_repo.update(project)
            await self.uow.commit()

            logger.info(f"Updated billing profile of project {project.id}: {sorted(changes)}")
            return Return.ok(BillingProfileResponseDTO.from_entity(project))

        except BillingError as e:
            await self.uow.rollback()
            return Return.err(to_error(e))
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PERSISTENCE_ERROR",
                    message="Failed to update billing profile",
                    reason=str(e),
                )
            )

    @staticmethod
    def _parse_enum(enum_cls, value, field_name: str):
        allowed = ", ".join(member.value for member in enum_cls)
        if value is None:
            raise ValidationError(f"{field_name} cannot be null", reason=f"Expected one of: {allowed}")
        try:
            return enum_cls(value)
        except ValueError:
            raise ValidationError(f"Invalid {field_name} '{value}'", reason=f"Expected one of: {allowed}")
