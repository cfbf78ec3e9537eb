"""Consignments module for the OTC desk.

This module provides functionality for:
- Creating, updating and withdrawing consignments
- Reserving and releasing inventory under a per-consignment exclusion lock
- Matching requested deal terms against available consignments
- Computing the agent commission
- Buyer-safe display of consignment terms
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

import locks
import store as entity_store

from .chains import (
    Chain, is_valid_address, normalize_address, wallet_to_entity_id
)
from .commission import calculate_agent_commission
from .exceptions import (
    AlreadyWithdrawnError,
    ConflictError,
    ConsignmentError,
    ImmutabilityError,
    InsufficientAmountError,
    LockHeldError,
    MissingFixedTermsError,
    NotFoundError,
    OutOfRangeError,
    StateError,
    ValidationError,
)
from .models import (
    Consignment,
    ConsignmentDisplay,
    ConsignmentStatus,
    CreateConsignmentRequest,
    Deal,
    DealStatus,
    RecordDealRequest,
    UpdateConsignmentRequest,
    parse_request,
)
from .sanitizer import is_consignment_owner, is_visible_to, sanitize_for_buyer

__all__ = [
    'ConsignmentManager', 'Consignment', 'ConsignmentDisplay', 'ConsignmentStatus',
    'CreateConsignmentRequest', 'UpdateConsignmentRequest', 'RecordDealRequest',
    'Deal', 'DealStatus', 'Chain', 'calculate_agent_commission',
    'sanitize_for_buyer', 'is_consignment_owner', 'is_visible_to',
    'ConsignmentError', 'ValidationError', 'MissingFixedTermsError', 'OutOfRangeError',
    'ConflictError', 'LockHeldError', 'InsufficientAmountError', 'NotFoundError',
    'ImmutabilityError', 'StateError', 'AlreadyWithdrawnError',
]

logger = logging.getLogger(__name__)

# Creation defaults for terms the consigner leaves unset
DEFAULT_MIN_DEAL_AMOUNT = '1'
DEFAULT_MIN_DISCOUNT_BPS = 0
DEFAULT_MAX_DISCOUNT_BPS = 10000
DEFAULT_MIN_LOCKUP_DAYS = 0
DEFAULT_MAX_LOCKUP_DAYS = 365

# Frozen once any inventory has been reserved
IMMUTABLE_AFTER_DEALS = (
    'total_amount',
    'min_deal_amount',
    'max_deal_amount',
    'is_fractionalized',
    'is_negotiable',
    'fixed_discount_bps',
    'fixed_lockup_days',
)

# Update fields that may be cleared by passing None
NULLABLE_FIELDS = {'fixed_discount_bps', 'fixed_lockup_days', 'allowed_buyers'}

Amount = Union[int, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_amount(value: Amount, name: str = 'amount', allow_zero: bool = False) -> int:
    """Convert an amount to int, requiring a positive integer unless ``allow_zero``."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer amount")
    if isinstance(value, str):
        if not value.isdigit():
            raise ValidationError(f"{name} must be a non-negative integer string: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer amount")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{name} must be positive")
    return value


def check_terms(
    is_negotiable: bool,
    fixed_discount_bps: Optional[int],
    fixed_lockup_days: Optional[int],
    total_amount: int,
    min_deal_amount: int,
    max_deal_amount: int,
    min_discount_bps: int,
    max_discount_bps: int,
    min_lockup_days: int,
    max_lockup_days: int,
) -> None:
    """Check a consignment's terms are consistent, in a fixed order.

    Raises:
        MissingFixedTermsError: If fixed terms are incomplete
        ValidationError: On the first inverted range or bound
    """
    if not is_negotiable and (fixed_discount_bps is None or fixed_lockup_days is None):
        raise MissingFixedTermsError(
            "Fixed consignments must specify fixed_discount_bps and fixed_lockup_days"
        )
    if min_deal_amount > max_deal_amount:
        raise ValidationError("min_deal_amount cannot exceed max_deal_amount")
    if total_amount < min_deal_amount:
        raise ValidationError(
            f"Total amount ({total_amount}) must be at least min_deal_amount ({min_deal_amount})"
        )
    if min_discount_bps > max_discount_bps:
        raise ValidationError("min_discount_bps cannot exceed max_discount_bps")
    if min_lockup_days > max_lockup_days:
        raise ValidationError("min_lockup_days cannot exceed max_lockup_days")
    if max_deal_amount > total_amount:
        raise ValidationError(
            f"max_deal_amount ({max_deal_amount}) cannot exceed total amount ({total_amount})"
        )
    if total_amount <= 0:
        raise ValidationError("Total amount must be positive")


def _check_consignment_terms(consignment: Consignment) -> None:
    check_terms(
        consignment.is_negotiable,
        consignment.fixed_discount_bps,
        consignment.fixed_lockup_days,
        consignment.total,
        consignment.min_deal,
        consignment.max_deal,
        consignment.min_discount_bps,
        consignment.max_discount_bps,
        consignment.min_lockup_days,
        consignment.max_lockup_days,
    )


class ConsignmentManager:
    """Manager class for consignment operations.

    Every operation that reads and then writes a consignment's remaining
    amount or status does so while holding that consignment's exclusion
    lock. Contention is reported immediately as ``LockHeldError``.
    """

    def __init__(
        self,
        store: Optional['entity_store.EntityStore'] = None,
        lock_provider: Optional['locks.LockProvider'] = None
    ):
        """Initialize the consignment manager.

        Args:
            store: Optional entity store. If not provided, will use the shared store.
            lock_provider: Optional lock provider. If not provided, will use the shared provider.
        """
        self.store = store
        self.lock_provider = lock_provider

    async def ensure_backends(self):
        """Ensure we have a store and a lock provider."""
        if not self.store:
            self.store = await entity_store.get_store()
        if not self.lock_provider:
            self.lock_provider = await locks.get_lock_provider()

    def _hold(self, consignment_id: str):
        return locks.hold(self.lock_provider, locks.lock_key(consignment_id))

    async def _load(self, consignment_id: str) -> Consignment:
        consignment = await self.store.get_consignment(consignment_id)
        if consignment is None:
            raise NotFoundError(f"Consignment {consignment_id} not found")
        return consignment

    async def _load_many(self, consignment_ids: Sequence[str]) -> List[Consignment]:
        consignments = []
        for consignment_id in consignment_ids:
            consignment = await self.store.get_consignment(consignment_id)
            if consignment is not None:
                consignments.append(consignment)
        return consignments

    async def create_consignment(
        self,
        params: Union[CreateConsignmentRequest, Dict[str, Any]]
    ) -> Consignment:
        """Create a new consignment.

        Args:
            params: Creation request. Unset terms fall back to desk defaults:
                    deal size 1..amount, discount 0..10000 bps, lockup 0..365 days,
                    volatility and execution window from settings.

        Returns:
            The persisted consignment, ``active`` with nothing reserved

        Raises:
            ValidationError: If the request is malformed or its terms are inconsistent
        """
        await self.ensure_backends()
        request = parse_request(CreateConsignmentRequest, params)

        from config import settings_conf

        min_deal_amount = request.min_deal_amount or DEFAULT_MIN_DEAL_AMOUNT
        max_deal_amount = request.max_deal_amount or request.amount
        min_discount_bps = _default(request.min_discount_bps, DEFAULT_MIN_DISCOUNT_BPS)
        max_discount_bps = _default(request.max_discount_bps, DEFAULT_MAX_DISCOUNT_BPS)
        min_lockup_days = _default(request.min_lockup_days, DEFAULT_MIN_LOCKUP_DAYS)
        max_lockup_days = _default(request.max_lockup_days, DEFAULT_MAX_LOCKUP_DAYS)

        try:
            check_terms(
                request.is_negotiable,
                request.fixed_discount_bps,
                request.fixed_lockup_days,
                int(request.amount),
                int(min_deal_amount),
                int(max_deal_amount),
                min_discount_bps,
                max_discount_bps,
                min_lockup_days,
                max_lockup_days,
            )
        except ValidationError as e:
            logger.warning(f"Rejected consignment for token {request.token_id}: {e}")
            raise

        chain = request.chain
        consigner_address = normalize_address(request.consigner_address, chain)
        allowed_buyers = (
            [normalize_address(buyer, chain) for buyer in request.allowed_buyers]
            if request.allowed_buyers is not None else None
        )
        now = _now()

        consignment = Consignment(
            id=str(uuid.uuid4()),
            token_id=request.token_id,
            chain=chain,
            consigner_address=consigner_address,
            consigner_entity_id=wallet_to_entity_id(consigner_address, chain),
            total_amount=request.amount,
            remaining_amount=request.amount,
            is_negotiable=request.is_negotiable,
            fixed_discount_bps=request.fixed_discount_bps,
            fixed_lockup_days=request.fixed_lockup_days,
            min_discount_bps=min_discount_bps,
            max_discount_bps=max_discount_bps,
            min_lockup_days=min_lockup_days,
            max_lockup_days=max_lockup_days,
            min_deal_amount=min_deal_amount,
            max_deal_amount=max_deal_amount,
            is_fractionalized=request.is_fractionalized,
            is_private=request.is_private,
            allowed_buyers=allowed_buyers,
            max_price_volatility_bps=_default(
                request.max_price_volatility_bps,
                settings_conf['default_max_price_volatility_bps']
            ),
            max_time_to_execute_seconds=_default(
                request.max_time_to_execute_seconds,
                settings_conf['default_max_time_to_execute_seconds']
            ),
            status=ConsignmentStatus.ACTIVE,
            contract_consignment_id=request.contract_consignment_id,
            created_at=now,
            updated_at=now,
        )

        await self.store.save_consignment(consignment)
        logger.info(
            f"Created consignment {consignment.id} for token {consignment.token_id} "
            f"on {chain.value}: {consignment.total_amount} units"
        )
        return consignment

    async def get_consignment(self, consignment_id: str) -> Consignment:
        """Get a consignment by id.

        Raises:
            NotFoundError: If the consignment doesn't exist
        """
        await self.ensure_backends()
        return await self._load(consignment_id)

    async def update_consignment(
        self,
        consignment_id: str,
        updates: Union[UpdateConsignmentRequest, Dict[str, Any]]
    ) -> Consignment:
        """Update a consignment's mutable fields.

        Once any inventory has been reserved the supply, deal-size bounds,
        fractionalization, negotiability and fixed terms are frozen. The merged record is
        checked as a whole before anything is written.

        Raises:
            NotFoundError: If the consignment doesn't exist
            ImmutabilityError: If the update touches a frozen field
            StateError: If the consignment has been withdrawn
            ValidationError: If the update is malformed or leaves inconsistent terms
            LockHeldError: If the consignment is being modified by another caller
        """
        await self.ensure_backends()
        request = parse_request(UpdateConsignmentRequest, updates)
        changes = request.model_dump(exclude_unset=True)

        cleared = [field for field, value in changes.items()
                   if value is None and field not in NULLABLE_FIELDS]
        if cleared:
            raise ValidationError(f"Cannot clear required fields: {', '.join(sorted(cleared))}")

        async with self._hold(consignment_id):
            consignment = await self._load(consignment_id)

            if consignment.status is ConsignmentStatus.WITHDRAWN:
                raise StateError(f"Consignment {consignment_id} has been withdrawn")

            if consignment.has_deals:
                for field in IMMUTABLE_AFTER_DEALS:
                    if field in changes:
                        logger.warning(
                            f"Rejected update of {field} on consignment {consignment_id} after deals"
                        )
                        raise ImmutabilityError(field, consignment_id)

            if changes.get('allowed_buyers') is not None:
                changes['allowed_buyers'] = self._normalize_buyers(
                    changes['allowed_buyers'], consignment.chain
                )

            merged = consignment.model_dump()
            merged.update(changes)
            if 'total_amount' in changes:
                # Nothing reserved yet, so remaining follows total
                merged['remaining_amount'] = changes['total_amount']
            merged['updated_at'] = _now()

            updated = Consignment.model_validate(merged)
            _check_consignment_terms(updated)

            await self.store.save_consignment(updated)
            logger.info(f"Updated consignment {consignment_id}: {', '.join(sorted(changes))}")
            return updated

    @staticmethod
    def _normalize_buyers(buyers: List[str], chain: Chain) -> List[str]:
        normalized = []
        for buyer in buyers:
            if not is_valid_address(buyer.strip(), chain):
                raise ValidationError(f"Invalid {chain.value} address in allowed_buyers: {buyer}")
            normalized.append(normalize_address(buyer, chain))
        return normalized

    async def reserve_amount(self, consignment_id: str, amount: Amount) -> Consignment:
        """Atomically take ``amount`` out of a consignment's remaining inventory.

        Args:
            consignment_id: The consignment to reserve against
            amount: Positive integer amount (int or decimal string)

        Returns:
            The updated consignment; ``depleted`` when nothing remains

        Raises:
            LockHeldError: If another caller is modifying the consignment
            NotFoundError: If the consignment doesn't exist
            InsufficientAmountError: If the amount exceeds what remains
            StateError: If the consignment is paused or withdrawn
            OutOfRangeError: If the amount is outside the deal-size bounds
        """
        await self.ensure_backends()
        requested = _parse_amount(amount)

        async with self._hold(consignment_id):
            consignment = await self._load(consignment_id)
            remaining = consignment.remaining

            if consignment.status is ConsignmentStatus.DEPLETED:
                raise InsufficientAmountError(consignment_id, remaining, requested)
            if consignment.status is not ConsignmentStatus.ACTIVE:
                raise StateError(
                    f"Consignment {consignment_id} is not active ({consignment.status.value})"
                )
            if requested > remaining:
                logger.warning(
                    f"Insufficient amount on consignment {consignment_id}: "
                    f"available {remaining}, requested {requested}"
                )
                raise InsufficientAmountError(consignment_id, remaining, requested)
            if requested < consignment.min_deal or requested > consignment.max_deal:
                raise OutOfRangeError(requested, consignment.min_deal, consignment.max_deal)

            new_remaining = remaining - requested
            now = _now()
            updated = consignment.model_copy(update={
                'remaining_amount': str(new_remaining),
                'status': ConsignmentStatus.DEPLETED if new_remaining == 0 else ConsignmentStatus.ACTIVE,
                'last_deal_at': now,
                'updated_at': now,
            })
            await self.store.save_consignment(updated)

        logger.info(
            f"Reserved {requested} on consignment {consignment_id}, {new_remaining} remaining"
        )
        return updated

    async def release_reservation(self, consignment_id: str, amount: Amount) -> Consignment:
        """Return a previously reserved amount to a consignment.

        A depleted consignment becomes active again. Paused and withdrawn
        consignments keep their status.

        Raises:
            LockHeldError: If another caller is modifying the consignment
            NotFoundError: If the consignment doesn't exist
            ValidationError: If the release would exceed the total amount
        """
        await self.ensure_backends()
        released = _parse_amount(amount)

        async with self._hold(consignment_id):
            consignment = await self._load(consignment_id)
            new_remaining = consignment.remaining + released
            if new_remaining > consignment.total:
                raise ValidationError(
                    f"Releasing {released} on consignment {consignment_id} would exceed "
                    f"its total amount {consignment.total_amount}"
                )

            status = consignment.status
            if status is ConsignmentStatus.DEPLETED and new_remaining > 0:
                status = ConsignmentStatus.ACTIVE

            updated = consignment.model_copy(update={
                'remaining_amount': str(new_remaining),
                'status': status,
                'updated_at': _now(),
            })
            await self.store.save_consignment(updated)

        logger.info(
            f"Released {released} on consignment {consignment_id}, {new_remaining} remaining"
        )
        return updated

    async def withdraw_consignment(self, consignment_id: str) -> Consignment:
        """Withdraw a consignment. Withdrawal is terminal.

        Raises:
            AlreadyWithdrawnError: If the consignment was already withdrawn
        """
        await self.ensure_backends()
        async with self._hold(consignment_id):
            consignment = await self._load(consignment_id)
            if consignment.status is ConsignmentStatus.WITHDRAWN:
                raise AlreadyWithdrawnError(f"Consignment {consignment_id} already withdrawn")
            updated = await self._set_status(consignment, ConsignmentStatus.WITHDRAWN)

        logger.info(f"Withdrew consignment {consignment_id}")
        return updated

    async def pause_consignment(self, consignment_id: str) -> Consignment:
        """Stop new reservations against an active consignment."""
        await self.ensure_backends()
        async with self._hold(consignment_id):
            consignment = await self._load(consignment_id)
            if consignment.status is not ConsignmentStatus.ACTIVE:
                raise StateError(
                    f"Cannot pause consignment {consignment_id} ({consignment.status.value})"
                )
            updated = await self._set_status(consignment, ConsignmentStatus.PAUSED)

        logger.info(f"Paused consignment {consignment_id}")
        return updated

    async def resume_consignment(self, consignment_id: str) -> Consignment:
        """Reopen a paused consignment."""
        await self.ensure_backends()
        async with self._hold(consignment_id):
            consignment = await self._load(consignment_id)
            if consignment.status is not ConsignmentStatus.PAUSED:
                raise StateError(
                    f"Cannot resume consignment {consignment_id} ({consignment.status.value})"
                )
            status = ConsignmentStatus.ACTIVE if consignment.remaining > 0 else ConsignmentStatus.DEPLETED
            updated = await self._set_status(consignment, status)

        logger.info(f"Resumed consignment {consignment_id} as {status.value}")
        return updated

    async def _set_status(self, consignment: Consignment, status: ConsignmentStatus) -> Consignment:
        updated = consignment.model_copy(update={'status': status, 'updated_at': _now()})
        await self.store.save_consignment(updated)
        return updated

    async def get_consignments_by_token(
        self,
        token_id: str,
        include_private: bool = False,
        requester_address: Optional[str] = None,
        min_amount: Optional[Amount] = None
    ) -> List[Consignment]:
        """Get the active consignments for a token, in creation order.

        Args:
            token_id: Token to look up
            include_private: Include private consignments. With a requester,
                             only those the requester owns or is allowed to buy from.
            requester_address: Address of the caller browsing the listings
            min_amount: Only keep consignments with at least this much remaining
        """
        await self.ensure_backends()
        consignments = [
            c for c in await self._load_many(await self.store.list_by_token(token_id))
            if c.status is ConsignmentStatus.ACTIVE
        ]

        if not include_private:
            consignments = [c for c in consignments if not c.is_private]
        elif requester_address:
            consignments = [
                c for c in consignments
                if is_visible_to(c, requester_address)
            ]

        if min_amount is not None:
            floor = _parse_amount(min_amount, 'min_amount', allow_zero=True)
            consignments = [c for c in consignments if c.remaining >= floor]

        return consignments

    async def get_consigner_consignments(
        self,
        consigner_address: str,
        chain: Optional[Union[Chain, str]] = None
    ) -> List[Consignment]:
        """Get every consignment a consigner created, in any status."""
        await self.ensure_backends()
        address = normalize_address(consigner_address, chain)
        return await self._load_many(await self.store.list_by_consigner(address))

    async def get_all_consignments(
        self,
        chain: Optional[Union[Chain, str]] = None,
        token_id: Optional[str] = None,
        is_negotiable: Optional[bool] = None
    ) -> List[Consignment]:
        """Get all active consignments matching the filters."""
        await self.ensure_backends()
        ids = await self.store.list_all(
            chain=Chain(chain) if chain is not None else None,
            token_id=token_id,
            is_negotiable=is_negotiable
        )
        return [c for c in await self._load_many(ids) if c.status is ConsignmentStatus.ACTIVE]

    @staticmethod
    def find_suitable_consignment(
        candidates: Sequence[Consignment],
        amount: Amount,
        discount_bps: int,
        lockup_days: int
    ) -> Optional[Consignment]:
        """Return the first candidate that can fund the requested deal.

        Candidates are scanned in the given order and the first one passing
        every check wins; there is no price ranking. Negotiable consignments
        need the terms inside their ranges, fixed ones need an exact match.
        """
        requested = _parse_amount(amount)
        for c in candidates:
            if requested < c.min_deal or requested > c.max_deal:
                continue
            if requested > c.remaining:
                continue

            if c.is_negotiable:
                if not c.min_discount_bps <= discount_bps <= c.max_discount_bps:
                    continue
                if not c.min_lockup_days <= lockup_days <= c.max_lockup_days:
                    continue
            else:
                if discount_bps != c.fixed_discount_bps:
                    continue
                if lockup_days != c.fixed_lockup_days:
                    continue

            return c

        return None

    async def find_consignment_for_quote(
        self,
        token_id: str,
        amount: Amount,
        discount_bps: int,
        lockup_days: int,
        requester_address: Optional[str] = None
    ) -> Optional[Consignment]:
        """Find the first consignment for a token that can fund a quote's terms."""
        candidates = await self.get_consignments_by_token(
            token_id,
            include_private=requester_address is not None,
            requester_address=requester_address
        )
        match = self.find_suitable_consignment(candidates, _parse_amount(amount), discount_bps, lockup_days)
        if match is None:
            logger.debug(
                f"No consignment for token {token_id} can fund {amount} "
                f"at {discount_bps} bps / {lockup_days} days"
            )
        return match

    @staticmethod
    def calculate_agent_commission(discount_bps: int, lockup_days: int) -> int:
        """Return the agent commission in bps for the given deal terms."""
        return calculate_agent_commission(discount_bps, lockup_days)


def _default(value, fallback):
    return fallback if value is None else value
