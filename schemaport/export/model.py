"""In-memory export definition entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ConnectionRole(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


@dataclass
class User:
    """Creator or updator of an export."""
    full_name: str
    email: str
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_json(self) -> Dict[str, Any]:
        return {"full_name": self.full_name, "email": self.email}


@dataclass
class Connection:
    """Named connection string for a source or destination store."""
    name: str
    connection_string: str
    id: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        return {"name": self.name, "connection_string": self.connection_string}


@dataclass
class Mapping:
    """One field projection from a source path to a destination column."""
    source_field_name: str
    destination_field_name: str
    source_field_type: str
    destination_field_type: str
    version: str = "1.0"
    id: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "source_field_name": self.source_field_name,
            "destination_field_name": self.destination_field_name,
            "source_field_type": self.source_field_type,
            "destination_field_type": self.destination_field_type,
            "version": self.version,
        }


@dataclass
class Schema:
    """
    Column mapping for one source collection.

    Mappings keep the order in which fields were discovered.
    """
    namespace: str
    collection: str
    sql_table: str
    version: str
    mappings: List[Mapping] = field(default_factory=list)
    indexes: str = ""
    id: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "collection": self.collection,
            "sql_table": self.sql_table,
            "version": self.version,
            "indexes": self.indexes,
            "mappings": [m.to_json() for m in self.mappings],
        }


@dataclass
class Export:
    """
    Full definition of one source to destination export.

    Filters are ordered collection names kept verbatim, duplicates
    included.
    """
    namespace: str
    export_type: str
    include_filters: List[str] = field(default_factory=list)
    exclude_filters: List[str] = field(default_factory=list)
    source_connection: Optional[Connection] = None
    destination_connection: Optional[Connection] = None
    creator: Optional[User] = None
    updator: Optional[User] = None
    schemas: List[Schema] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        """JSON-ready projection of the export without store-assigned ids."""
        return {
            "namespace": self.namespace,
            "type": self.export_type,
            "source_connection": self.source_connection.to_json() if self.source_connection else None,
            "destination_connection": (
                self.destination_connection.to_json() if self.destination_connection else None
            ),
            "include_filters": list(self.include_filters),
            "exclude_filters": list(self.exclude_filters),
            "creator": self.creator.to_json() if self.creator else None,
            "updator": self.updator.to_json() if self.updator else None,
            "schemas": [s.collection for s in self.schemas],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
