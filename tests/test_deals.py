"""Tests for the deal recorder."""

import pytest
import pytest_asyncio

from consignments import (
    ConsignmentManager,
    DealStatus,
    NotFoundError,
    ValidationError,
)
from deals import DealRecorder
from locks import MemoryLockProvider
from store import MemoryStore

SELLER_ADDRESS = "0x52908400098527886E0F7030069857D2E4169EE7"
BUYER_ADDRESS = "0x8617E340B3D01FA5F11F306F4090FD50E238070D"
SOLANA_SELLER = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
SOLANA_BUYER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"

@pytest.fixture
def entity_store():
    return MemoryStore()

@pytest_asyncio.fixture
async def manager(entity_store):
    return ConsignmentManager(store=entity_store, lock_provider=MemoryLockProvider())

@pytest_asyncio.fixture
async def recorder(entity_store):
    return DealRecorder(store=entity_store)

@pytest_asyncio.fixture
async def consignment(manager):
    return await manager.create_consignment({
        "token_id": "token-eliza",
        "consigner_address": SELLER_ADDRESS,
        "amount": "1000",
        "is_negotiable": True,
        "chain": "base",
    })

def deal_params(consignment_id: str, **overrides):
    params = {
        "consignment_id": consignment_id,
        "quote_id": "quote-1",
        "token_id": "token-eliza",
        "buyer_address": BUYER_ADDRESS,
        "amount": "250",
        "discount_bps": 800,
        "lockup_days": 30,
    }
    params.update(overrides)
    return params

@pytest.mark.asyncio
async def test_record_deal(manager, recorder, consignment):
    """Test recording a deal after its reservation."""
    await manager.reserve_amount(consignment.id, "250")

    deal = await recorder.record_deal(deal_params(consignment.id, offer_id="offer-9"))

    assert deal.consignment_id == consignment.id
    assert deal.quote_id == "quote-1"
    assert deal.buyer_address == BUYER_ADDRESS.lower()
    assert deal.amount == "250"
    assert deal.offer_id == "offer-9"
    assert deal.status is DealStatus.EXECUTED
    assert deal.executed_at is not None
    assert await recorder.get_deal(deal.id) == deal

@pytest.mark.asyncio
async def test_record_deal_leaves_inventory_alone(manager, recorder, consignment):
    await recorder.record_deal(deal_params(consignment.id))

    stored = await manager.get_consignment(consignment.id)
    assert stored.remaining_amount == "1000"

@pytest.mark.asyncio
async def test_deals_by_consignment_in_order(manager, recorder, consignment):
    other = await manager.create_consignment({
        "token_id": "token-eliza",
        "consigner_address": SELLER_ADDRESS,
        "amount": "1000",
        "is_negotiable": True,
        "chain": "base",
    })
    first = await recorder.record_deal(deal_params(consignment.id, quote_id="q-1"))
    await recorder.record_deal(deal_params(other.id, quote_id="q-2"))
    third = await recorder.record_deal(deal_params(consignment.id, quote_id="q-3"))

    deals = await recorder.get_deals_by_consignment(consignment.id)
    assert [d.id for d in deals] == [first.id, third.id]
    assert await recorder.get_deals_by_consignment("missing") == []

@pytest.mark.asyncio
async def test_record_deal_solana_buyer_keeps_case(manager, recorder):
    consignment = await manager.create_consignment({
        "token_id": "token-sol",
        "consigner_address": SOLANA_SELLER,
        "amount": "1000",
        "is_negotiable": True,
        "chain": "solana",
        "contract_consignment_id": "3",
    })

    deal = await recorder.record_deal(deal_params(
        consignment.id, token_id="token-sol", buyer_address=SOLANA_BUYER, chain="solana"
    ))
    assert deal.buyer_address == SOLANA_BUYER

@pytest.mark.asyncio
async def test_record_deal_unknown_consignment(recorder):
    with pytest.raises(NotFoundError):
        await recorder.record_deal(deal_params("missing"))

@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"token_id": "token-other"},
    {"chain": "solana", "buyer_address": SOLANA_BUYER},
    {"buyer_address": "nobody"},
    {"amount": "1e3"},
    {"discount_bps": 10001},
    {"quote_id": ""},
])
async def test_record_deal_rejects_bad_input(recorder, entity_store, consignment, overrides):
    with pytest.raises(ValidationError):
        await recorder.record_deal(deal_params(consignment.id, **overrides))

    assert await entity_store.list_deals_by_consignment(consignment.id) == []

@pytest.mark.asyncio
async def test_get_unknown_deal(recorder):
    with pytest.raises(NotFoundError):
        await recorder.get_deal("missing")
