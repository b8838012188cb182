"""Project Repository Interface

Defines the contract for project (billing profile) persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from src.domain.project import Project


class ProjectRepository(ABC):
    """
    Repository interface for Project persistence

    Lookups take an optional created_by; when given, rows owned by another
    tenant are treated as absent.
    """

    @abstractmethod
    async def get_by_id(self, project_id: str, created_by: Optional[str] = None) -> Optional[Project]:
        """
        Retrieve project by ID

        Args:
            project_id: Project ID
            created_by: Optional owner scope

        Returns:
            Project if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_gateway_subscription_id(self, subscription_id: str) -> Optional[Project]:
        pass

    @abstractmethod
    async def get_by_gateway_customer_id(self, customer_id: str) -> Optional[Project]:
        pass

    @abstractmethod
    async def list_by_billing_anchor_day(self, day: int) -> List[Project]:
        """
        Retrieve every project whose billing anchor day equals ``day``

        Used by the billing sweep; not tenant scoped.
        """
        pass

    @abstractmethod
    async def update(self, project: Project) -> Project:
        pass
