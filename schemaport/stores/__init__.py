"""
Source and destination store abstractions.

Provides the MongoDB source store and the PostgreSQL destination store.
"""

from schemaport.stores.adapter import DestinationStore, SourceStore
from schemaport.stores.factory import get_destination_store, get_source_store
from schemaport.stores.mongo import MongoSourceStore
from schemaport.stores.postgres import PostgresDestinationStore

__all__ = [
    "SourceStore",
    "DestinationStore",
    "MongoSourceStore",
    "PostgresDestinationStore",
    "get_source_store",
    "get_destination_store",
]
