"""In-process entity store."""

import asyncio
from typing import Dict, List, Optional

from consignments.chains import Chain
from consignments.models import Consignment, Deal

from .base import EntityStore


def _index_keys(consignment: Consignment):
    return consignment.token_id, consignment.consigner_address


class MemoryStore(EntityStore):
    """Entity store backed by dicts.

    Records are copied on the way in and out so callers never share state
    with the store. Every mutation of a record and its indexes happens under
    one asyncio lock.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._consignments: Dict[str, Consignment] = {}
        self._deals: Dict[str, Deal] = {}
        self._by_token: Dict[str, List[str]] = {}
        self._by_consigner: Dict[str, List[str]] = {}
        self._deals_by_consignment: Dict[str, List[str]] = {}
        self._order: List[str] = []

    async def get_consignment(self, consignment_id: str) -> Optional[Consignment]:
        consignment = self._consignments.get(consignment_id)
        return consignment.model_copy(deep=True) if consignment else None

    async def save_consignment(self, consignment: Consignment) -> None:
        async with self._lock:
            previous = self._consignments.get(consignment.id)
            self._consignments[consignment.id] = consignment.model_copy(deep=True)
            if previous is None:
                self._order.append(consignment.id)
                self._index(consignment)
            elif _index_keys(previous) != _index_keys(consignment):
                self._unindex(previous)
                self._index(consignment)

    async def delete_consignment(self, consignment_id: str) -> None:
        async with self._lock:
            consignment = self._consignments.pop(consignment_id, None)
            if consignment is None:
                return
            self._unindex(consignment)
            self._order.remove(consignment_id)

    async def list_by_token(self, token_id: str) -> List[str]:
        return list(self._by_token.get(token_id, []))

    async def list_by_consigner(self, consigner_address: str) -> List[str]:
        return list(self._by_consigner.get(consigner_address, []))

    async def list_all(
        self,
        chain: Optional[Chain] = None,
        token_id: Optional[str] = None,
        is_negotiable: Optional[bool] = None
    ) -> List[str]:
        ids = []
        for consignment_id in self._order:
            c = self._consignments[consignment_id]
            if chain is not None and c.chain != chain:
                continue
            if token_id is not None and c.token_id != token_id:
                continue
            if is_negotiable is not None and c.is_negotiable != is_negotiable:
                continue
            ids.append(consignment_id)
        return ids

    async def get_deal(self, deal_id: str) -> Optional[Deal]:
        deal = self._deals.get(deal_id)
        return deal.model_copy(deep=True) if deal else None

    async def save_deal(self, deal: Deal) -> None:
        async with self._lock:
            if deal.id not in self._deals:
                self._deals_by_consignment.setdefault(deal.consignment_id, []).append(deal.id)
            self._deals[deal.id] = deal.model_copy(deep=True)

    async def list_deals_by_consignment(self, consignment_id: str) -> List[str]:
        return list(self._deals_by_consignment.get(consignment_id, []))

    def _index(self, consignment: Consignment) -> None:
        self._by_token.setdefault(consignment.token_id, []).append(consignment.id)
        self._by_consigner.setdefault(consignment.consigner_address, []).append(consignment.id)

    def _unindex(self, consignment: Consignment) -> None:
        for index, key in (
            (self._by_token, consignment.token_id),
            (self._by_consigner, consignment.consigner_address),
        ):
            ids = index.get(key, [])
            if consignment.id in ids:
                ids.remove(consignment.id)
            if not ids:
                index.pop(key, None)
