"""
PostgreSQL destination store using SQLAlchemy's asyncio engine and asyncpg.
"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from schemaport.export.errors import DestinationStoreError
from schemaport.export.model import Schema
from schemaport.stores.adapter import DestinationStore

logger = logging.getLogger(__name__)


def to_async_url(uri: str) -> str:
    """
    Rewrite a postgres:// or postgresql:// URI for the asyncpg driver.

    URIs that already name a driver are returned unchanged.
    """
    for scheme in ("postgresql://", "postgres://"):
        if uri.startswith(scheme):
            return "postgresql+asyncpg://" + uri[len(scheme):]
    return uri


class PostgresDestinationStore(DestinationStore):
    """
    Runs generated DDL against a PostgreSQL destination.

    Each statement runs in its own transaction.
    """

    def __init__(
        self,
        uri: str,
        pool_size: int = 5,
        timeout_seconds: float = 30.0,
        engine: Optional[AsyncEngine] = None,
    ):
        """
        Initialize the store.

        Args:
            uri: PostgreSQL connection string
            pool_size: Connection pool size
            timeout_seconds: Upper bound for each statement
            engine: Pre-built engine (tests)
        """
        self.timeout_seconds = timeout_seconds
        self.engine = engine or create_async_engine(
            to_async_url(uri),
            pool_size=pool_size,
            pool_pre_ping=True,
        )

    async def ping(self) -> bool:
        try:
            await self.execute("SELECT 1")
        except DestinationStoreError as e:
            logger.warning(f"Error connecting to destination database: {e}")
            return False
        return True

    async def execute(self, sql: str) -> int:
        try:
            return await asyncio.wait_for(self._execute(sql), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise DestinationStoreError(
                f"statement timed out after {self.timeout_seconds}s") from e
        except SQLAlchemyError as e:
            raise DestinationStoreError(f"statement failed: {e}") from e

    async def _execute(self, sql: str) -> int:
        logger.debug(sql)
        async with self.engine.begin() as conn:
            result = await conn.execute(text(sql))
            return result.rowcount

    async def fetch_all(self, sql: str) -> List[tuple]:
        try:
            async with self.engine.connect() as conn:
                result = await asyncio.wait_for(
                    conn.execute(text(sql)), timeout=self.timeout_seconds)
                return [tuple(row) for row in result.fetchall()]
        except asyncio.TimeoutError as e:
            raise DestinationStoreError(
                f"query timed out after {self.timeout_seconds}s") from e
        except SQLAlchemyError as e:
            raise DestinationStoreError(f"query failed: {e}") from e

    async def table_exists(self, schema: Schema) -> bool:
        rows = await self.fetch_all(self.ddl.exists_check(schema))
        return len(rows) > 0

    async def create_table(self, schema: Schema) -> None:
        logger.info(f"Creating table {schema.namespace}.{schema.sql_table}")
        await self.execute(self.ddl.create_if_not_exists(schema))

    async def drop_table(self, schema: Schema) -> None:
        logger.info(f"Dropping table {schema.namespace}.{schema.sql_table}")
        await self.execute(self.ddl.drop_if_exists(schema))

    async def close(self) -> None:
        await self.engine.dispose()
