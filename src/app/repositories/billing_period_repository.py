"""Billing Period Repository Interface

Defines the contract for billing period persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, List
from src.domain.billing_period import BillingPeriod


class BillingPeriodRepository(ABC):
    """Repository interface for BillingPeriod persistence"""

    @abstractmethod
    async def create(self, period: BillingPeriod) -> BillingPeriod:
        """
        Create a new billing period

        Args:
            period: BillingPeriod entity to persist

        Returns:
            Created BillingPeriod
        """
        pass

    @abstractmethod
    async def get_by_id(self, period_id: str, created_by: Optional[str] = None) -> Optional[BillingPeriod]:
        pass

    @abstractmethod
    async def list_by_project(self, project_id: str, created_by: str) -> List[BillingPeriod]:
        """
        Retrieve billing periods for a project, newest first

        Args:
            project_id: Project ID
            created_by: Owner scope

        Returns:
            List of billing periods
        """
        pass

    @abstractmethod
    async def find_covering(self, project_id: str, day: date, created_by: str) -> Optional[BillingPeriod]:
        """Latest billing period of the project whose range contains the day"""
        pass
