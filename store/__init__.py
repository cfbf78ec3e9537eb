"""Entity store module for consignment and deal persistence.

This module handles:
- The EntityStore contract the engine is written against
- Choosing a backend (in-memory or PostgreSQL) from settings
- Store lifecycle
"""

import logging
from typing import Optional

from .base import EntityStore
from .memory import MemoryStore

__all__ = ['EntityStore', 'MemoryStore', 'init_store', 'get_store', 'set_store', 'close_store']

logger = logging.getLogger(__name__)

_store: Optional[EntityStore] = None

async def init_store(backend: Optional[str] = None) -> EntityStore:
    """Initialize the shared entity store.

    Args:
        backend: 'memory' or 'postgres'. If not provided, will use settings.

    Returns:
        The initialized store

    Raises:
        ValueError: If the backend is unknown
    """
    global _store

    if _store:
        return _store

    from config import settings_conf

    backend = backend or settings_conf['store_backend']
    if backend == 'memory':
        _store = MemoryStore()
    elif backend == 'postgres':
        from database import init_db
        from .postgres import PostgresStore

        await init_db()
        _store = PostgresStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")

    logger.info(f"Initialized {backend} entity store")
    return _store

async def get_store() -> EntityStore:
    """Get the shared entity store, initializing it on first use."""
    if not _store:
        await init_store()
    return _store

def set_store(store: Optional[EntityStore]) -> None:
    """Install a specific store instance as the shared one."""
    global _store
    _store = store

async def close_store() -> None:
    """Close the shared entity store."""
    global _store

    if _store:
        await _store.close()
        _store = None
