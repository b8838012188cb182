"""Payment Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from src.domain.payment import Payment


class PaymentRepository(ABC):
    """Repository interface for one-off checkout payments"""

    @abstractmethod
    async def get_by_checkout_session_id(self, session_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        pass
