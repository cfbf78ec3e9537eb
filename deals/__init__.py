"""Deals module for the audit history of executed sales.

Recording a deal never changes a consignment's inventory. The reservation
that funded it must already have been made through
``ConsignmentManager.reserve_amount`` in the same workflow, and callers are
responsible for recording each executed quote only once.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import store as entity_store
from consignments.chains import normalize_address
from consignments.exceptions import NotFoundError, ValidationError
from consignments.models import Deal, DealStatus, RecordDealRequest, parse_request

__all__ = ['DealRecorder']

logger = logging.getLogger(__name__)


class DealRecorder:
    """Persists executed deals and reads back a consignment's deal history."""

    def __init__(self, store: Optional['entity_store.EntityStore'] = None):
        """Initialize the deal recorder.

        Args:
            store: Optional entity store. If not provided, will use the shared store.
        """
        self.store = store

    async def ensure_store(self):
        """Ensure we have an entity store."""
        if not self.store:
            self.store = await entity_store.get_store()

    async def record_deal(self, params: Union[RecordDealRequest, Dict[str, Any]]) -> Deal:
        """Record an executed deal against its consignment.

        The buyer address is normalized with the consignment's chain rule.

        Returns:
            The persisted deal, ``executed`` as of now

        Raises:
            ValidationError: If the request is malformed or names a different token
            NotFoundError: If the consignment doesn't exist
        """
        await self.ensure_store()
        request = parse_request(RecordDealRequest, params)

        consignment = await self.store.get_consignment(request.consignment_id)
        if consignment is None:
            raise NotFoundError(f"Consignment {request.consignment_id} not found")
        if request.token_id != consignment.token_id:
            raise ValidationError(
                f"Deal token {request.token_id} does not match consignment token {consignment.token_id}"
            )
        if request.chain is not None and request.chain != consignment.chain:
            raise ValidationError(
                f"Deal chain {request.chain.value} does not match consignment chain "
                f"{consignment.chain.value}"
            )

        deal = Deal(
            id=str(uuid.uuid4()),
            consignment_id=consignment.id,
            quote_id=request.quote_id,
            token_id=request.token_id,
            buyer_address=normalize_address(request.buyer_address, consignment.chain),
            amount=request.amount,
            discount_bps=request.discount_bps,
            lockup_days=request.lockup_days,
            offer_id=request.offer_id,
            status=DealStatus.EXECUTED,
            executed_at=datetime.now(timezone.utc),
        )
        await self.store.save_deal(deal)

        logger.info(
            f"Recorded deal {deal.id} for quote {deal.quote_id}: {deal.amount} units "
            f"of {deal.token_id} from consignment {deal.consignment_id}"
        )
        return deal

    async def get_deal(self, deal_id: str) -> Deal:
        """Get a deal by id.

        Raises:
            NotFoundError: If the deal doesn't exist
        """
        await self.ensure_store()
        deal = await self.store.get_deal(deal_id)
        if deal is None:
            raise NotFoundError(f"Deal {deal_id} not found")
        return deal

    async def get_deals_by_consignment(self, consignment_id: str) -> List[Deal]:
        """Get a consignment's deals in the order they were recorded."""
        await self.ensure_store()
        deals = []
        for deal_id in await self.store.list_deals_by_consignment(consignment_id):
            deal = await self.store.get_deal(deal_id)
            if deal is not None:
                deals.append(deal)
        return deals
