"""Client Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from src.domain.client import Client


class ClientRepository(ABC):
    """Repository interface for Client persistence"""

    @abstractmethod
    async def get_by_id(self, client_id: str, created_by: Optional[str] = None) -> Optional[Client]:
        pass

    @abstractmethod
    async def update(self, client: Client) -> Client:
        pass
