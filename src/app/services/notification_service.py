"""Sweep report delivery contract"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class NotificationService(ABC):
    @abstractmethod
    async def publish_sweep_report(self, report: Dict[str, Any]) -> bool:
        """
        Deliver a serialized SweepResultDTO (run_date, counters, results)

        Returns False when the channel could not take the report.
        """
        pass
