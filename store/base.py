"""Entity store contract for consignment and deal records."""

from abc import ABC, abstractmethod
from typing import List, Optional

from consignments.chains import Chain
from consignments.models import Consignment, Deal


class EntityStore(ABC):
    """Keyed persistence for consignments and deals.

    Index lookups return ids in insertion order; callers resolve them into
    records with ``get_consignment`` / ``get_deal``. Saving a record keeps
    every index it belongs to up to date in the same step.
    """

    @abstractmethod
    async def get_consignment(self, consignment_id: str) -> Optional[Consignment]:
        ...

    @abstractmethod
    async def save_consignment(self, consignment: Consignment) -> None:
        """Insert or replace a consignment and index it by token and consigner."""

    @abstractmethod
    async def delete_consignment(self, consignment_id: str) -> None:
        ...

    @abstractmethod
    async def list_by_token(self, token_id: str) -> List[str]:
        ...

    @abstractmethod
    async def list_by_consigner(self, consigner_address: str) -> List[str]:
        ...

    @abstractmethod
    async def list_all(
        self,
        chain: Optional[Chain] = None,
        token_id: Optional[str] = None,
        is_negotiable: Optional[bool] = None
    ) -> List[str]:
        ...

    @abstractmethod
    async def get_deal(self, deal_id: str) -> Optional[Deal]:
        ...

    @abstractmethod
    async def save_deal(self, deal: Deal) -> None:
        """Insert a deal and append it to its consignment's deal index."""

    @abstractmethod
    async def list_deals_by_consignment(self, consignment_id: str) -> List[str]:
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
