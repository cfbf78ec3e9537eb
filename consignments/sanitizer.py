"""Buyer-safe views of consignments.

Non-owners only ever see the guaranteed end of a negotiable range, so the
seller's side keeps room to negotiate up from the visible baseline:

- negotiable: display discount is ``min_discount_bps`` (lowest discount) and
  display lockup is ``max_lockup_days`` (longest lockup)
- fixed: the actual fixed terms are shown
"""

from typing import Optional

from .chains import addresses_equal
from .exceptions import ValidationError
from .models import Consignment, ConsignmentDisplay


def _display_discount(consignment: Consignment) -> int:
    if consignment.is_negotiable:
        return consignment.min_discount_bps
    if consignment.fixed_discount_bps is None:
        raise ValidationError(
            f"Fixed consignment {consignment.id} missing required fixed_discount_bps"
        )
    return consignment.fixed_discount_bps


def _display_lockup(consignment: Consignment) -> int:
    if consignment.is_negotiable:
        return consignment.max_lockup_days
    if consignment.fixed_lockup_days is None:
        raise ValidationError(
            f"Fixed consignment {consignment.id} missing required fixed_lockup_days"
        )
    return consignment.fixed_lockup_days


def sanitize_for_buyer(consignment: Consignment) -> ConsignmentDisplay:
    """Project a consignment into the view shown to non-owners."""
    fixed = not consignment.is_negotiable
    return ConsignmentDisplay(
        id=consignment.id,
        token_id=consignment.token_id,
        chain=consignment.chain,
        consigner_address=consignment.consigner_address,
        consigner_entity_id=consignment.consigner_entity_id,
        total_amount=consignment.total_amount,
        remaining_amount=consignment.remaining_amount,
        is_negotiable=consignment.is_negotiable,
        is_fractionalized=consignment.is_fractionalized,
        is_private=consignment.is_private,
        max_price_volatility_bps=consignment.max_price_volatility_bps,
        max_time_to_execute_seconds=consignment.max_time_to_execute_seconds,
        status=consignment.status,
        contract_consignment_id=consignment.contract_consignment_id,
        created_at=consignment.created_at,
        updated_at=consignment.updated_at,
        last_deal_at=consignment.last_deal_at,
        display_discount_bps=_display_discount(consignment),
        display_lockup_days=_display_lockup(consignment),
        terms_type="fixed" if fixed else "negotiable",
        fixed_discount_bps=consignment.fixed_discount_bps if fixed else None,
        fixed_lockup_days=consignment.fixed_lockup_days if fixed else None,
    )


def is_consignment_owner(consignment: Consignment, caller_address: Optional[str]) -> bool:
    """Check whether the caller is the consigner, using the chain's case rule."""
    return addresses_equal(caller_address, consignment.consigner_address, consignment.chain)


def is_visible_to(consignment: Consignment, caller_address: Optional[str]) -> bool:
    """Check whether the caller may see the consignment at all.

    Public consignments are visible to everyone. Private ones only to the
    consigner and the addresses on the allow-list.
    """
    if not consignment.is_private:
        return True
    if is_consignment_owner(consignment, caller_address):
        return True
    return any(
        addresses_equal(buyer, caller_address, consignment.chain)
        for buyer in consignment.allowed_buyers or []
    )
