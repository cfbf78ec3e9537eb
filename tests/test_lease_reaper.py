"""Tests for the lease reaper worker lifecycle."""

import asyncio

import pytest

from locks import LockProvider, MemoryLockProvider
from workers import LeaseReaper, WorkerState, WorkerStateError

class FlakyProvider(LockProvider):
    """Lock provider whose first purge fails."""

    def __init__(self):
        self.calls = 0

    async def try_acquire(self, key):
        return "token"

    async def release(self, key, token):
        pass

    async def purge_expired(self):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("database unavailable")
        return 0

@pytest.mark.asyncio
async def test_lifecycle():
    reaper = LeaseReaper(MemoryLockProvider(), interval=0.01)
    assert reaper.state is WorkerState.IDLE

    reaper.start()
    assert reaper.state is WorkerState.RUNNING
    with pytest.raises(WorkerStateError):
        reaper.start()

    await reaper.stop()
    assert reaper.state is WorkerState.STOPPED

    with pytest.raises(WorkerStateError):
        reaper.start()
    with pytest.raises(WorkerStateError):
        await reaper.stop()

@pytest.mark.asyncio
async def test_stop_before_start():
    reaper = LeaseReaper(MemoryLockProvider(), interval=0.01)

    await reaper.stop()

    assert reaper.state is WorkerState.STOPPED
    with pytest.raises(WorkerStateError):
        reaper.start()

@pytest.mark.asyncio
async def test_reap_once_purges_expired_leases():
    provider = MemoryLockProvider(ttl_seconds=0.01)
    await provider.try_acquire("a")
    await asyncio.sleep(0.05)

    reaper = LeaseReaper(provider, interval=60)
    assert await reaper.reap_once() == 1
    assert await reaper.reap_once() == 0

@pytest.mark.asyncio
async def test_loop_survives_errors():
    """Test a failing pass is logged and the loop keeps going."""
    provider = FlakyProvider()
    reaper = LeaseReaper(provider, interval=0.01)

    reaper.start()
    await asyncio.sleep(0.1)
    await reaper.stop()

    assert provider.calls >= 2
