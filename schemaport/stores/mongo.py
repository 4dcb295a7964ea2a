"""
MongoDB source store backed by pymongo's asyncio client.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError, PyMongoError

from schemaport.export.errors import SourceStoreError
from schemaport.stores.adapter import SourceStore

logger = logging.getLogger(__name__)


class MongoSourceStore(SourceStore):
    """
    Reads collection names and sample documents from MongoDB.

    The database is taken from the connection string's default database,
    falling back to the connection name.
    """

    def __init__(
        self,
        uri: str,
        database_name: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ):
        """
        Initialize the store. No network I/O happens until the first call.

        Args:
            uri: MongoDB connection string
            database_name: Database to use if the URI names none
            timeout_seconds: Upper bound for each store call
        """
        self.timeout_seconds = timeout_seconds
        self._client: AsyncMongoClient = AsyncMongoClient(
            uri, serverSelectionTimeoutMS=int(timeout_seconds * 1000), connect=False
        )
        try:
            self._db = self._client.get_default_database(default=database_name)
        except ConfigurationError as e:
            raise SourceStoreError(
                "connection string should specify the default database name "
                "to use as a source"
            ) from e
        logger.info(f"Source database: {self._db.name}")

    @property
    def database_name(self) -> str:
        return self._db.name

    async def _call(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise SourceStoreError(
                f"{operation} timed out after {self.timeout_seconds}s") from e
        except PyMongoError as e:
            raise SourceStoreError(f"{operation} failed: {e}") from e

    async def list_collections(self) -> List[str]:
        names = await self._call("list collections", self._db.list_collection_names())
        logger.debug(f"Found {len(names)} collections in {self._db.name}")
        return names

    async def sample_one(self, collection: str) -> Optional[Dict[str, Any]]:
        return await self._call(
            f"sample collection {collection}",
            self._db[collection].find_one({}),
        )

    async def ping(self) -> bool:
        try:
            await self._call("ping", self._db.command("ping"))
        except SourceStoreError as e:
            logger.warning(f"Error connecting to source database: {e}")
            return False
        logger.info("Source database pinged. Connected!")
        return True

    async def close(self) -> None:
        await self._client.close()
