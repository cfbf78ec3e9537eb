"""Exclusion lock backed by lease rows in ``consignment_locks``."""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from asyncpg.exceptions import PostgresError
from asyncpg.pool import Pool

from database import get_pool
from database.exceptions import DatabaseError

from .base import LockProvider

logger = logging.getLogger(__name__)

# Takes the lease when the key is free or its lease has expired. A live lease
# leaves the row untouched and returns nothing.
ACQUIRE_SQL = """
    INSERT INTO consignment_locks (key, token, acquired_at, expires_at)
    VALUES ($1, $3, now(), now() + $2::interval)
    ON CONFLICT (key) DO UPDATE
        SET token = EXCLUDED.token,
            acquired_at = EXCLUDED.acquired_at,
            expires_at = EXCLUDED.expires_at
        WHERE consignment_locks.expires_at < now()
    RETURNING key
"""

RELEASE_SQL = "DELETE FROM consignment_locks WHERE key = $1 AND token = $2"


class PostgresLockProvider(LockProvider):
    """Lease-based lock shared by every process using the same database."""

    def __init__(self, ttl_seconds: float = 30, pool: Optional[Pool] = None) -> None:
        self.ttl = timedelta(seconds=ttl_seconds)
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def try_acquire(self, key: str) -> Optional[str]:
        await self.ensure_pool()
        token = uuid.uuid4().hex
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(ACQUIRE_SQL, key, self.ttl, token)
        except PostgresError as e:
            logger.error(f"Error acquiring lock {key}: {e}")
            raise DatabaseError(str(e))
        return token if row is not None else None

    async def release(self, key: str, token: str) -> None:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(RELEASE_SQL, key, token)
        except PostgresError as e:
            logger.error(f"Error releasing lock {key}: {e}")
            raise DatabaseError(str(e))

    async def purge_expired(self) -> int:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute('DELETE FROM consignment_locks WHERE expires_at < now()')
        except PostgresError as e:
            logger.error(f"Error purging expired locks: {e}")
            raise DatabaseError(str(e))
        # asyncpg returns the command tag, e.g. 'DELETE 3'
        return int(status.split()[-1])
