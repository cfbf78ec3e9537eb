"""Tests for the in-process exclusion lock."""

import asyncio

import pytest

from consignments import ConflictError, LockHeldError
from locks import MemoryLockProvider, hold, lock_key

def test_lock_key():
    assert lock_key("abc") == "consignment_lock:abc"

@pytest.mark.asyncio
async def test_try_acquire_fails_fast():
    provider = MemoryLockProvider(ttl_seconds=30)

    assert await provider.try_acquire("k")
    assert not await provider.try_acquire("k")
    assert await provider.try_acquire("other")

@pytest.mark.asyncio
async def test_release_is_idempotent():
    provider = MemoryLockProvider(ttl_seconds=30)
    token = await provider.try_acquire("k")

    await provider.release("k", token)
    await provider.release("k", token)
    await provider.release("never-held", token)

    assert await provider.try_acquire("k")

@pytest.mark.asyncio
async def test_expired_lease_counts_as_free():
    provider = MemoryLockProvider(ttl_seconds=0.05)
    await provider.try_acquire("k")
    assert provider.is_held("k")

    await asyncio.sleep(0.1)

    assert not provider.is_held("k")
    assert await provider.try_acquire("k")

@pytest.mark.asyncio
async def test_purge_expired():
    provider = MemoryLockProvider(ttl_seconds=0.05)
    await provider.try_acquire("a")
    await provider.try_acquire("b")
    await asyncio.sleep(0.1)
    provider.ttl_seconds = 30
    await provider.try_acquire("c")

    assert await provider.purge_expired() == 2
    assert await provider.purge_expired() == 0
    assert provider.is_held("c")

@pytest.mark.asyncio
async def test_hold_releases_on_exit():
    provider = MemoryLockProvider(ttl_seconds=30)

    async with hold(provider, "k"):
        assert provider.is_held("k")

    assert not provider.is_held("k")

@pytest.mark.asyncio
async def test_hold_releases_on_error():
    provider = MemoryLockProvider(ttl_seconds=30)

    with pytest.raises(RuntimeError):
        async with hold(provider, "k"):
            raise RuntimeError("boom")

    assert not provider.is_held("k")

@pytest.mark.asyncio
async def test_hold_raises_when_held():
    """Test a held key raises a conflict and the holder keeps its lease."""
    provider = MemoryLockProvider(ttl_seconds=30)
    await provider.try_acquire("k")

    with pytest.raises(LockHeldError) as exc:
        async with hold(provider, "k"):
            pytest.fail("entered a held lock")

    assert isinstance(exc.value, ConflictError)
    assert provider.is_held("k")

@pytest.mark.asyncio
async def test_stale_holder_cannot_release_new_lease():
    """Test a holder whose lease expired does not free the key it lost."""
    provider = MemoryLockProvider(ttl_seconds=0.05)
    stale = await provider.try_acquire("k")
    await asyncio.sleep(0.1)
    current = await provider.try_acquire("k")
    assert current and current != stale

    await provider.release("k", stale)

    assert provider.is_held("k")
    assert await provider.try_acquire("k") is None

    await provider.release("k", current)
    assert not provider.is_held("k")

@pytest.mark.asyncio
async def test_overrunning_hold_leaves_next_holder_alone():
    provider = MemoryLockProvider(ttl_seconds=0.05)

    async with hold(provider, "k"):
        await asyncio.sleep(0.1)
        provider.ttl_seconds = 30
        assert await provider.try_acquire("k")

    assert provider.is_held("k")
    with pytest.raises(LockHeldError):
        async with hold(provider, "k"):
            pytest.fail("entered a held lock")
