"""
PostgreSQL collection store
"""
import re
from typing import Dict, Any, List, Optional

import asyncpg
from loguru import logger

from .base import CollectionStore


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """
    Quote a table or column name for interpolation into SQL

    Raises:
        ValueError: If the name is not a plain identifier
    """
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class PostgreSQLStore(CollectionStore):
    """
    PostgreSQL collection store

    Uses asyncpg for async PostgreSQL operations. Each collection maps to a
    table of the same name with an "id" primary key.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "mellow",
        user: str = "mellow",
        password: str = "",
        pool: Optional[asyncpg.Pool] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool = pool

    async def connect(self):
        """Establish connection pool"""
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                min_size=1,
                max_size=4
            )
            logger.info("PostgreSQL connection pool created")
        except Exception as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise

    async def disconnect(self):
        """Close connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed")

    async def health_check(self) -> bool:
        """Check database connectivity"""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def count(self, collection: str) -> int:
        table = quote_identifier(collection)
        async with self.pool.acquire() as conn:
            return await conn.fetchval(f"SELECT COUNT(*) FROM {table}")

    async def fetch_batch(
        self,
        collection: str,
        offset: int,
        limit: int
    ) -> List[Dict[str, Any]]:
        table = quote_identifier(collection)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {table} ORDER BY id LIMIT $1 OFFSET $2",
                limit, offset
            )
            return [dict(row) for row in rows]

    async def update_fields(
        self,
        collection: str,
        record_id: Any,
        fields: Dict[str, Any]
    ) -> None:
        if not fields:
            return

        table = quote_identifier(collection)

        # Build dynamic UPDATE query
        set_clauses = []
        values = []
        for param_index, (key, value) in enumerate(fields.items(), start=1):
            set_clauses.append(f"{quote_identifier(key)} = ${param_index}")
            values.append(value)
        values.append(record_id)

        query = f"UPDATE {table} SET {', '.join(set_clauses)} WHERE id = ${len(values)}"

        async with self.pool.acquire() as conn:
            await conn.execute(query, *values)
