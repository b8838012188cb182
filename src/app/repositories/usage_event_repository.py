"""Usage Event Repository Interface"""

from abc import ABC, abstractmethod
from typing import List
from src.domain.usage_event import UsageEvent


class UsageEventRepository(ABC):
    """Repository interface for UsageEvent persistence"""

    @abstractmethod
    async def create(self, event: UsageEvent) -> UsageEvent:
        pass

    @abstractmethod
    async def list_unqueued_for_period(self, billing_period_id: str, created_by: str) -> List[UsageEvent]:
        """
        Retrieve usage events of a period that were never queued as pending items

        Args:
            billing_period_id: Billing period ID
            created_by: Owner scope

        Returns:
            Usage events with pending_item_id unset
        """
        pass

    @abstractmethod
    async def update(self, event: UsageEvent) -> UsageEvent:
        pass
