"""
Store factory for creating source and destination store instances.

Picks the implementation from the connection string scheme and the
export type.
"""

from schemaport.config.settings import get_settings
from schemaport.export.model import Connection
from schemaport.stores.adapter import DestinationStore, SourceStore
from schemaport.stores.mongo import MongoSourceStore
from schemaport.stores.postgres import PostgresDestinationStore

SUPPORTED_DESTINATIONS = ("postgres",)


def destination_kind(export_type: str) -> str:
    """Return the destination part of an export type such as 'mongo_to_postgres'."""
    return export_type.rsplit("_to_", 1)[-1].lower()


def get_source_store(connection: Connection) -> SourceStore:
    """
    Create the source store for a connection.

    Raises:
        ValueError: If the connection string scheme is not supported
    """
    settings = get_settings()

    if connection.connection_string.startswith(("mongodb://", "mongodb+srv://")):
        return MongoSourceStore(
            uri=connection.connection_string,
            database_name=connection.name,
            timeout_seconds=settings.store_timeout_seconds,
        )
    raise ValueError(
        f"Unsupported source connection: {connection.name}. "
        "Supported: mongodb://, mongodb+srv://"
    )


def get_destination_store(export_type: str, connection: Connection) -> DestinationStore:
    """
    Create the destination store for an export.

    Raises:
        ValueError: If the export type's destination is not supported
    """
    settings = get_settings()
    kind = destination_kind(export_type)

    if kind == "postgres":
        return PostgresDestinationStore(
            uri=connection.connection_string,
            pool_size=settings.destination_pool_size,
            timeout_seconds=settings.store_timeout_seconds,
        )
    raise ValueError(
        f"Unsupported destination type: {kind}. "
        f"Supported: {', '.join(SUPPORTED_DESTINATIONS)}"
    )
