"""Tests for deal matching and the agent commission."""

import itertools
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from consignments import (
    Chain,
    Consignment,
    ConsignmentManager,
    ValidationError,
    calculate_agent_commission,
)
from consignments.commission import discount_component, lockup_component
from locks import MemoryLockProvider
from store import MemoryStore

SELLER_ADDRESS = "0x52908400098527886e0f7030069857d2e4169ee7"
BUYER_ADDRESS = "0x8617E340B3D01FA5F11F306F4090FD50E238070D"

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)

def make_consignment(consignment_id: str, **overrides) -> Consignment:
    """Build a consignment record directly, bypassing creation checks."""
    fields = {
        "id": consignment_id,
        "token_id": "token-eliza",
        "chain": Chain.BASE,
        "consigner_address": SELLER_ADDRESS,
        "consigner_entity_id": "entity",
        "total_amount": "1000",
        "remaining_amount": "1000",
        "is_negotiable": True,
        "min_discount_bps": 100,
        "max_discount_bps": 2000,
        "min_lockup_days": 7,
        "max_lockup_days": 90,
        "min_deal_amount": "100",
        "max_deal_amount": "500",
        "max_price_volatility_bps": 1000,
        "max_time_to_execute_seconds": 3600,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Consignment(**fields)

find = ConsignmentManager.find_suitable_consignment

def test_find_returns_none_without_candidates():
    assert find([], "100", 500, 30) is None

def test_find_first_match_is_order_deterministic():
    """Test the first passing candidate wins in every ordering."""
    a = make_consignment("a")
    b = make_consignment("b", max_discount_bps=3000)
    c = make_consignment("c", min_deal_amount="600", max_deal_amount="900")

    for ordering in itertools.permutations([a, b, c]):
        valid = [x for x in ordering if x.id in ("a", "b")]
        assert find(list(ordering), "200", 500, 30).id == valid[0].id

@pytest.mark.parametrize("amount", ["abc", "-5", "0"])
def test_find_rejects_malformed_amount(amount):
    with pytest.raises(ValidationError):
        find([make_consignment("a")], amount, 500, 30)

def test_find_skips_candidates_that_cannot_fund():
    too_small = make_consignment("small", remaining_amount="150")
    out_of_range = make_consignment("range", min_deal_amount="300")
    good = make_consignment("good")

    assert find([too_small, out_of_range, good], "200", 500, 30).id == "good"

@pytest.mark.parametrize("amount,discount,lockup,expected", [
    ("100", 100, 7, True),
    ("500", 2000, 90, True),
    ("99", 500, 30, False),
    ("501", 500, 30, False),
    ("200", 99, 30, False),
    ("200", 2001, 30, False),
    ("200", 500, 6, False),
    ("200", 500, 91, False),
])
def test_find_negotiable_bounds_are_inclusive(amount, discount, lockup, expected):
    candidate = make_consignment("n")
    assert (find([candidate], amount, discount, lockup) is not None) is expected

def test_find_fixed_requires_exact_terms():
    """Test fixed consignments only match their exact discount and lockup."""
    fixed = make_consignment(
        "fixed",
        is_negotiable=False,
        fixed_discount_bps=500,
        fixed_lockup_days=30,
        min_discount_bps=0,
        max_discount_bps=10000,
        min_lockup_days=0,
        max_lockup_days=365,
    )

    assert find([fixed], "200", 500, 30).id == "fixed"
    assert find([fixed], "200", 499, 30) is None
    assert find([fixed], "200", 501, 30) is None
    assert find([fixed], "200", 500, 29) is None

def test_find_handles_amounts_beyond_int64():
    big = make_consignment(
        "big",
        total_amount="1" + "0" * 30,
        remaining_amount="1" + "0" * 30,
        min_deal_amount="1",
        max_deal_amount="1" + "0" * 30,
    )

    assert find([big], "9" * 30, 500, 30).id == "big"
    assert find([big], "1" + "0" * 31, 500, 30) is None

@pytest_asyncio.fixture
async def manager():
    return ConsignmentManager(store=MemoryStore(), lock_provider=MemoryLockProvider())

@pytest.mark.asyncio
async def test_find_consignment_for_quote(manager):
    """Test quote matching walks the token's consignments in creation order."""
    base = {
        "token_id": "token-eliza",
        "consigner_address": SELLER_ADDRESS,
        "amount": "1000",
        "chain": "base",
    }
    fixed = await manager.create_consignment({
        **base, "is_negotiable": False, "fixed_discount_bps": 800, "fixed_lockup_days": 60,
    })
    negotiable = await manager.create_consignment({
        **base, "is_negotiable": True, "min_discount_bps": 500, "max_discount_bps": 1500,
    })
    private = await manager.create_consignment({
        **base, "is_negotiable": True, "is_private": True, "allowed_buyers": [BUYER_ADDRESS],
    })

    match = await manager.find_consignment_for_quote("token-eliza", "100", 800, 60)
    assert match.id == fixed.id

    match = await manager.find_consignment_for_quote("token-eliza", "100", 1000, 60)
    assert match.id == negotiable.id

    assert await manager.find_consignment_for_quote("token-eliza", "100", 3000, 60) is None

    match = await manager.find_consignment_for_quote(
        "token-eliza", "100", 3000, 60, requester_address=BUYER_ADDRESS
    )
    assert match.id == private.id

    await manager.withdraw_consignment(fixed.id)
    match = await manager.find_consignment_for_quote("token-eliza", "100", 800, 60)
    assert match.id == negotiable.id

@pytest.mark.parametrize("discount_bps,lockup_days,expected", [
    (500, 0, 100),
    (3000, 365, 75),
    (1750, 182, 87),
    (0, 0, 100),
    (10000, 0, 25),
    (500, 365, 150),
    (500, 10000, 150),
    (501, 0, 100),
    (2999, 0, 26),
])
def test_calculate_agent_commission(discount_bps, lockup_days, expected):
    assert calculate_agent_commission(discount_bps, lockup_days) == expected
    assert ConsignmentManager.calculate_agent_commission(discount_bps, lockup_days) == expected

def test_commission_components():
    assert discount_component(1750) == 63
    assert lockup_component(182) == 24
    assert lockup_component(364) == 49
    assert lockup_component(365) == 50

def test_commission_always_in_band():
    for discount_bps in range(0, 10001, 250):
        for lockup_days in (0, 1, 30, 180, 364, 365, 730):
            assert 25 <= calculate_agent_commission(discount_bps, lockup_days) <= 150
