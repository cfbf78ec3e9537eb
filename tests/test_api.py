"""Tests for the HTTP API."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api import app
from api.__main__ import build_server
from config import settings_conf
from locks import MemoryLockProvider, lock_key, set_lock_provider
from store import MemoryStore, set_store

SELLER_ADDRESS = "0x52908400098527886E0F7030069857D2E4169EE7"
BUYER_ADDRESS = "0x8617E340B3D01FA5F11F306F4090FD50E238070D"

SAMPLE_CONSIGNMENT = {
    "token_id": "token-eliza",
    "consigner_address": SELLER_ADDRESS,
    "amount": "1000",
    "is_negotiable": True,
    "min_discount_bps": 100,
    "max_discount_bps": 2000,
    "min_lockup_days": 7,
    "max_lockup_days": 90,
    "min_deal_amount": "100",
    "max_deal_amount": "500",
    "chain": "base",
}

@pytest.fixture
def lock_provider():
    return MemoryLockProvider(ttl_seconds=30)

@pytest_asyncio.fixture
async def client(lock_provider):
    """Create an API client over fresh in-memory backends."""
    set_store(MemoryStore())
    set_lock_provider(lock_provider)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    set_store(None)
    set_lock_provider(None)

@pytest_asyncio.fixture
async def consignment(client):
    response = await client.post("/consignments/", json=SAMPLE_CONSIGNMENT)
    assert response.status_code == 201
    return response.json()

def as_seller():
    return {"x-caller-address": SELLER_ADDRESS}

@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["store_backend"] == "memory"

@pytest.mark.asyncio
async def test_create_consignment(consignment):
    assert consignment["consigner_address"] == SELLER_ADDRESS.lower()
    assert consignment["remaining_amount"] == "1000"
    assert consignment["status"] == "active"
    assert consignment["max_discount_bps"] == 2000

@pytest.mark.asyncio
async def test_create_invalid_consignment(client):
    response = await client.post("/consignments/", json={**SAMPLE_CONSIGNMENT, "chain": "dogecoin"})
    assert response.status_code == 422

    response = await client.post("/consignments/", json={**SAMPLE_CONSIGNMENT, "min_lockup_days": 100})
    assert response.status_code == 400
    assert "min_lockup_days" in response.json()["detail"]

@pytest.mark.asyncio
async def test_get_consignment_views(client, consignment):
    """Test the consigner sees everything, buyers only the guaranteed terms."""
    url = f"/consignments/{consignment['id']}"

    owner_view = (await client.get(url, headers=as_seller())).json()
    assert owner_view["max_discount_bps"] == 2000
    assert owner_view["min_lockup_days"] == 7

    buyer_view = (await client.get(url, params={"callerAddress": BUYER_ADDRESS})).json()
    assert buyer_view["display_discount_bps"] == 100
    assert buyer_view["display_lockup_days"] == 90
    assert "max_discount_bps" not in buyer_view
    assert "min_lockup_days" not in buyer_view

    anonymous_view = (await client.get(url)).json()
    assert "max_discount_bps" not in anonymous_view

@pytest.mark.asyncio
async def test_get_unknown_consignment(client):
    response = await client.get("/consignments/missing")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_private_consignment_hidden(client):
    response = await client.post("/consignments/", json={
        **SAMPLE_CONSIGNMENT, "is_private": True, "allowed_buyers": [BUYER_ADDRESS]
    })
    consignment_id = response.json()["id"]

    response = await client.get(f"/consignments/{consignment_id}")
    assert response.status_code == 404

    response = await client.get(
        f"/consignments/{consignment_id}", headers={"x-caller-address": BUYER_ADDRESS}
    )
    assert response.status_code == 200

    listed = (await client.get("/consignments/", params={"token_id": "token-eliza"})).json()
    assert listed["consignments"] == []

    listed = (await client.get(
        "/consignments/", params={"token_id": "token-eliza", "callerAddress": BUYER_ADDRESS}
    )).json()
    assert [c["id"] for c in listed["consignments"]] == [consignment_id]

@pytest.mark.asyncio
async def test_list_consignments(client, consignment):
    response = await client.get("/consignments/", params={"token_id": "token-eliza"})
    listed = response.json()["consignments"]
    assert [c["id"] for c in listed] == [consignment["id"]]
    assert "max_discount_bps" not in listed[0]

    response = await client.get("/consignments/", params={"chain": "bsc"})
    assert response.json()["consignments"] == []

    response = await client.get(
        "/consignments/",
        params={"consigner_address": SELLER_ADDRESS},
        headers=as_seller()
    )
    assert response.json()["consignments"][0]["max_discount_bps"] == 2000

@pytest.mark.asyncio
async def test_update_requires_owner(client, consignment):
    url = f"/consignments/{consignment['id']}"

    response = await client.put(url, json={"max_lockup_days": 120})
    assert response.status_code == 403

    response = await client.put(url, json={"max_lockup_days": 120},
                                headers={"x-caller-address": BUYER_ADDRESS})
    assert response.status_code == 403

    response = await client.put(url, json={"max_lockup_days": 120}, headers=as_seller())
    assert response.status_code == 200
    assert response.json()["max_lockup_days"] == 120

@pytest.mark.asyncio
async def test_update_frozen_field(client, consignment):
    url = f"/consignments/{consignment['id']}"
    await client.post(f"{url}/reserve", json={"amount": "200"})

    response = await client.put(url, json={"total_amount": "5000"}, headers=as_seller())
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_reserve_and_release(client, consignment):
    url = f"/consignments/{consignment['id']}"

    response = await client.post(f"{url}/reserve", json={"amount": "500"})
    assert response.status_code == 200
    assert response.json() == {
        "consignment_id": consignment["id"], "remaining_amount": "500", "status": "active"
    }

    response = await client.post(f"{url}/reserve", json={"amount": "50"})
    assert response.status_code == 400

    await client.post(f"{url}/reserve", json={"amount": "500"})
    response = await client.post(f"{url}/reserve", json={"amount": "100"})
    assert response.status_code == 409

    response = await client.post(f"{url}/release", json={"amount": "500"})
    assert response.json()["status"] == "active"
    assert response.json()["remaining_amount"] == "500"

@pytest.mark.asyncio
async def test_reserve_while_locked(client, lock_provider, consignment):
    await lock_provider.try_acquire(lock_key(consignment["id"]))

    response = await client.post(f"/consignments/{consignment['id']}/reserve", json={"amount": "100"})
    assert response.status_code == 409

@pytest.mark.asyncio
async def test_withdraw(client, consignment):
    url = f"/consignments/{consignment['id']}"

    response = await client.delete(url, headers={"x-caller-address": BUYER_ADDRESS})
    assert response.status_code == 403

    response = await client.delete(url, headers=as_seller())
    assert response.status_code == 200
    assert response.json()["status"] == "withdrawn"

    response = await client.delete(url, headers=as_seller())
    assert response.status_code == 409

@pytest.mark.asyncio
async def test_pause_and_resume(client, consignment):
    url = f"/consignments/{consignment['id']}"

    response = await client.post(f"{url}/pause", headers=as_seller())
    assert response.json()["status"] == "paused"

    response = await client.post(f"{url}/reserve", json={"amount": "100"})
    assert response.status_code == 409

    response = await client.post(f"{url}/resume", headers=as_seller())
    assert response.json()["status"] == "active"

@pytest.mark.asyncio
async def test_match_and_commission(client, consignment):
    response = await client.post("/consignments/match", json={
        "token_id": "token-eliza", "amount": "200", "discount_bps": 1750, "lockup_days": 60,
    })
    assert response.status_code == 200
    assert response.json()["consignment"]["id"] == consignment["id"]
    assert response.json()["commission_bps"] == 63 + 8

    response = await client.post("/consignments/match", json={
        "token_id": "token-eliza", "amount": "200", "discount_bps": 2500, "lockup_days": 60,
    })
    assert response.status_code == 404

    response = await client.get("/consignments/commission",
                                params={"discount_bps": 1750, "lockup_days": 182})
    assert response.json()["commission_bps"] == 87

@pytest.mark.asyncio
async def test_deal_flow(client, consignment):
    """Test reserve, record and read back a deal."""
    url = f"/consignments/{consignment['id']}"
    await client.post(f"{url}/reserve", json={"amount": "300"})

    response = await client.post("/deals/", json={
        "consignment_id": consignment["id"],
        "quote_id": "quote-1",
        "token_id": "token-eliza",
        "buyer_address": BUYER_ADDRESS,
        "amount": "300",
        "discount_bps": 500,
        "lockup_days": 30,
    })
    assert response.status_code == 201
    deal = response.json()
    assert deal["buyer_address"] == BUYER_ADDRESS.lower()
    assert deal["status"] == "executed"

    response = await client.get(f"/deals/{deal['id']}")
    assert response.json()["quote_id"] == "quote-1"

    response = await client.get(f"{url}/deals")
    assert response.status_code == 403

    response = await client.get(f"{url}/deals", headers=as_seller())
    assert [d["id"] for d in response.json()["deals"]] == [deal["id"]]

    response = await client.get("/deals/missing")
    assert response.status_code == 404

def test_server_binds_configured_address():
    server = build_server()

    assert server.config.app == "api:app"
    assert server.config.host == settings_conf['api_host']
    assert server.config.port == settings_conf['api_port']
