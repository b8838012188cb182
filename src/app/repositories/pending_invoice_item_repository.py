"""Pending Invoice Item Repository Interface

Defines the contract for the pending-item queue. Status transitions are
conditional updates so concurrent composers cannot claim the same item.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from src.domain.pending_invoice_item import PendingInvoiceItem, PendingItemStatus


class PendingInvoiceItemRepository(ABC):
    """
    Repository interface for PendingInvoiceItem persistence

    Transition methods return whether the row actually changed; a False
    return means another writer moved the item first.
    """

    @abstractmethod
    async def create(self, item: PendingInvoiceItem) -> PendingInvoiceItem:
        """
        Create a new pending item

        Args:
            item: PendingInvoiceItem to persist (amount_cents already computed)

        Returns:
            Created PendingInvoiceItem
        """
        pass

    @abstractmethod
    async def get_by_id(self, item_id: str, created_by: Optional[str] = None) -> Optional[PendingInvoiceItem]:
        pass

    @abstractmethod
    async def get_by_ids(
        self,
        item_ids: List[str],
        created_by: Optional[str] = None,
        status: Optional[PendingItemStatus] = None,
        for_update: bool = False,
    ) -> List[PendingInvoiceItem]:
        """
        Retrieve pending items by ID

        Args:
            item_ids: Item IDs
            created_by: Optional owner scope
            status: Optional status filter
            for_update: Lock the selected rows (SELECT FOR UPDATE)

        Returns:
            Matching items, oldest first
        """
        pass

    @abstractmethod
    async def list_items(
        self,
        created_by: str,
        project_id: Optional[str] = None,
        client_id: Optional[str] = None,
        status: Optional[PendingItemStatus] = None,
        limit: Optional[int] = None,
    ) -> List[PendingInvoiceItem]:
        """Retrieve items for listing, newest first"""
        pass

    @abstractmethod
    async def list_pending_for_project(
        self,
        project_id: str,
        created_by: Optional[str] = None,
        for_update: bool = False,
    ) -> List[PendingInvoiceItem]:
        """
        Retrieve every item with status=pending for a project, oldest first

        Args:
            project_id: Project ID
            created_by: Optional owner scope
            for_update: Lock the selected rows (SELECT FOR UPDATE)

        Returns:
            Pending items
        """
        pass

    @abstractmethod
    async def mark_billed(
        self,
        item_id: str,
        invoice_id: str,
        line_item_id: Optional[str],
        created_by: Optional[str] = None,
    ) -> bool:
        """pending -> billed, linking the invoice and line item"""
        pass

    @abstractmethod
    async def mark_voided(self, item_id: str, created_by: Optional[str] = None) -> bool:
        """pending -> voided"""
        pass

    @abstractmethod
    async def revert_to_pending(self, item_id: str, invoice_id: str, created_by: Optional[str] = None) -> bool:
        """billed -> pending, only while the item is still billed on invoice_id"""
        pass
