"""
Abstract base classes for source and destination stores.

Defines the narrow interfaces the export core relies on. Connection
establishment and pooling are left to the implementations.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from schemaport.discovery.ddl_generator import DDLGenerator
from schemaport.export.model import Schema

logger = logging.getLogger(__name__)


class SourceStore(ABC):
    """
    Document store that schemas are discovered from.

    Only two reads are needed: the collection names, and the first
    document of a collection.
    """

    @abstractmethod
    async def list_collections(self) -> List[str]:
        """
        List collection names in the source database.

        Raises:
            SourceStoreError: If listing fails
        """
        pass

    @abstractmethod
    async def sample_one(self, collection: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the first document of a collection with an unfiltered query.

        Args:
            collection: Collection name

        Returns:
            The document, or None if the collection is empty

        Raises:
            SourceStoreError: If the query fails
        """
        pass

    async def ping(self) -> bool:
        """Check connectivity. Stores without a cheap check report True."""
        return True

    async def close(self) -> None:
        """Release client resources."""
        pass


class DestinationStore(ABC):
    """
    Relational store that export tables are created in.

    Used only to run generated DDL, never to move data.
    """

    ddl = DDLGenerator()

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the destination answers a trivial query."""
        pass

    @abstractmethod
    async def execute(self, sql: str) -> int:
        """
        Execute a single SQL statement.

        Args:
            sql: Statement text

        Returns:
            Number of rows affected as reported by the driver

        Raises:
            DestinationStoreError: If execution fails
        """
        pass

    async def prepare_tables(self, schemas: List[Schema]) -> None:
        """
        Make destination tables ready for a full export.

        Creates each namespace schema and table if missing, then truncates
        the table.
        """
        namespaces = []
        for schema in schemas:
            if schema.namespace not in namespaces:
                namespaces.append(schema.namespace)
                await self.execute(self.ddl.create_schema_if_not_exists(schema.namespace))

            logger.info(f"Creating table {schema.namespace}.{schema.sql_table}")
            await self.execute(self.ddl.create_if_not_exists(schema))
            rows = await self.execute(self.ddl.truncate(schema))
            logger.info(f"Truncated {rows} rows from the table {schema.sql_table}")

    async def close(self) -> None:
        """Release client resources."""
        pass
