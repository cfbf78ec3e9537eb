"""Entity store backed by PostgreSQL/CockroachDB through asyncpg.

Secondary lookups are served by table indexes (see database/schema/v1.py), so
indexing a record is part of the same INSERT that stores it.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from asyncpg.exceptions import PostgresError
from asyncpg.pool import Pool

from consignments.chains import Chain
from consignments.models import Consignment, Deal
from database import get_pool, close as close_db
from database.exceptions import DatabaseError

from .base import EntityStore

logger = logging.getLogger(__name__)

CONSIGNMENT_COLUMNS = (
    'id', 'token_id', 'chain', 'consigner_address', 'consigner_entity_id',
    'total_amount', 'remaining_amount', 'is_negotiable',
    'fixed_discount_bps', 'fixed_lockup_days',
    'min_discount_bps', 'max_discount_bps', 'min_lockup_days', 'max_lockup_days',
    'min_deal_amount', 'max_deal_amount', 'is_fractionalized', 'is_private',
    'allowed_buyers', 'max_price_volatility_bps', 'max_time_to_execute_seconds',
    'status', 'contract_consignment_id', 'created_at', 'updated_at', 'last_deal_at'
)

DEAL_COLUMNS = (
    'id', 'consignment_id', 'quote_id', 'token_id', 'buyer_address', 'amount',
    'discount_bps', 'lockup_days', 'offer_id', 'status', 'executed_at'
)

AMOUNT_COLUMNS = {'total_amount', 'remaining_amount', 'min_deal_amount', 'max_deal_amount', 'amount'}


def _upsert_sql(table: str, columns) -> str:
    placeholders = ', '.join(f'${i}' for i in range(1, len(columns) + 1))
    updates = ', '.join(f'{col} = EXCLUDED.{col}' for col in columns if col != 'id')
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT (id) DO UPDATE SET {updates}"
    )


def _to_row(record: Dict[str, Any], columns) -> List[Any]:
    values = []
    for col in columns:
        value = record[col]
        if col in AMOUNT_COLUMNS:
            value = Decimal(value)
        elif hasattr(value, 'value'):
            value = value.value
        values.append(value)
    return values


def _from_row(row) -> Dict[str, Any]:
    record = dict(row)
    record.pop('seq', None)
    for col in AMOUNT_COLUMNS & record.keys():
        record[col] = str(int(record[col]))
    if 'allowed_buyers' in record and record['allowed_buyers'] is not None:
        record['allowed_buyers'] = list(record['allowed_buyers'])
    return record


class PostgresStore(EntityStore):
    """Entity store over the ``consignments`` and ``consignment_deals`` tables."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        """Initialize the store.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _fetchrow(self, query: str, *args):
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except PostgresError as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e))

    async def _fetch_ids(self, query: str, *args) -> List[str]:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except PostgresError as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e))
        return [row['id'] for row in rows]

    async def _execute(self, query: str, *args) -> None:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(query, *args)
        except PostgresError as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e))

    async def get_consignment(self, consignment_id: str) -> Optional[Consignment]:
        row = await self._fetchrow('SELECT * FROM consignments WHERE id = $1', consignment_id)
        return Consignment.model_validate(_from_row(row)) if row else None

    async def save_consignment(self, consignment: Consignment) -> None:
        await self._execute(
            _upsert_sql('consignments', CONSIGNMENT_COLUMNS),
            *_to_row(consignment.model_dump(), CONSIGNMENT_COLUMNS)
        )

    async def delete_consignment(self, consignment_id: str) -> None:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        'DELETE FROM consignment_deals WHERE consignment_id = $1',
                        consignment_id
                    )
                    await conn.execute('DELETE FROM consignments WHERE id = $1', consignment_id)
        except PostgresError as e:
            logger.error(f"Database error deleting consignment {consignment_id}: {e}")
            raise DatabaseError(str(e))

    async def list_by_token(self, token_id: str) -> List[str]:
        return await self._fetch_ids(
            'SELECT id FROM consignments WHERE token_id = $1 ORDER BY seq',
            token_id
        )

    async def list_by_consigner(self, consigner_address: str) -> List[str]:
        return await self._fetch_ids(
            'SELECT id FROM consignments WHERE consigner_address = $1 ORDER BY seq',
            consigner_address
        )

    async def list_all(
        self,
        chain: Optional[Chain] = None,
        token_id: Optional[str] = None,
        is_negotiable: Optional[bool] = None
    ) -> List[str]:
        conditions = []
        values: List[Any] = []
        for column, value in (
            ('chain', chain.value if chain is not None else None),
            ('token_id', token_id),
            ('is_negotiable', is_negotiable),
        ):
            if value is not None:
                values.append(value)
                conditions.append(f'{column} = ${len(values)}')

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''
        return await self._fetch_ids(f'SELECT id FROM consignments {where} ORDER BY seq', *values)

    async def get_deal(self, deal_id: str) -> Optional[Deal]:
        row = await self._fetchrow('SELECT * FROM consignment_deals WHERE id = $1', deal_id)
        return Deal.model_validate(_from_row(row)) if row else None

    async def save_deal(self, deal: Deal) -> None:
        await self._execute(
            _upsert_sql('consignment_deals', DEAL_COLUMNS),
            *_to_row(deal.model_dump(), DEAL_COLUMNS)
        )

    async def list_deals_by_consignment(self, consignment_id: str) -> List[str]:
        return await self._fetch_ids(
            'SELECT id FROM consignment_deals WHERE consignment_id = $1 ORDER BY seq',
            consignment_id
        )

    async def close(self) -> None:
        await close_db()
        self.pool = None
