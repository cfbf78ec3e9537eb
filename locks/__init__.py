"""Exclusion locks for consignment mutations.

This module handles:
- The LockProvider contract (fail-fast acquire, owner-checked release, lease expiry)
- Scoped acquisition with guaranteed release
- Choosing a provider (in-process or PostgreSQL leases) from settings
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from consignments.exceptions import LockHeldError

from .base import LockProvider
from .memory import MemoryLockProvider

__all__ = [
    'LockProvider', 'MemoryLockProvider', 'hold', 'lock_key',
    'init_lock_provider', 'get_lock_provider', 'set_lock_provider', 'close_lock_provider'
]

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = 'consignment_lock'

_provider: Optional[LockProvider] = None


def lock_key(consignment_id: str) -> str:
    """Return the lock key guarding a consignment."""
    return f"{LOCK_KEY_PREFIX}:{consignment_id}"


@asynccontextmanager
async def hold(provider: LockProvider, key: str) -> AsyncIterator[None]:
    """Hold ``key`` for the duration of the block.

    Raises:
        LockHeldError: If the key is already held. The caller decides whether to retry.
    """
    token = await provider.try_acquire(key)
    if token is None:
        logger.warning(f"Lock {key} already held")
        raise LockHeldError(key)
    try:
        yield
    finally:
        await provider.release(key, token)


async def init_lock_provider(backend: Optional[str] = None) -> LockProvider:
    """Initialize the shared lock provider.

    Args:
        backend: 'memory' or 'postgres'. If not provided, will use settings.

    Raises:
        ValueError: If the backend is unknown
    """
    global _provider

    if _provider:
        return _provider

    from config import settings_conf

    backend = backend or settings_conf['store_backend']
    ttl = settings_conf['lock_ttl_seconds']
    if backend == 'memory':
        _provider = MemoryLockProvider(ttl_seconds=ttl)
    elif backend == 'postgres':
        from database import init_db
        from .postgres import PostgresLockProvider

        await init_db()
        _provider = PostgresLockProvider(ttl_seconds=ttl)
    else:
        raise ValueError(f"Unknown lock backend: {backend}")

    logger.info(f"Initialized {backend} lock provider (ttl {ttl}s)")
    return _provider


async def get_lock_provider() -> LockProvider:
    """Get the shared lock provider, initializing it on first use."""
    if not _provider:
        await init_lock_provider()
    return _provider


def set_lock_provider(provider: Optional[LockProvider]) -> None:
    """Install a specific provider instance as the shared one."""
    global _provider
    _provider = provider


async def close_lock_provider() -> None:
    """Close the shared lock provider."""
    global _provider

    if _provider:
        await _provider.close()
        _provider = None
