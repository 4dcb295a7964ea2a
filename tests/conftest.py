# Test configuration

import copy
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schemaport.catalog.database import init_db
from schemaport.catalog.store import MetadataStore, SqlMetadataStore
from schemaport.export.model import Connection, Export, Mapping, Schema, User
from schemaport.stores.adapter import DestinationStore, SourceStore


class FakeMetadataStore(MetadataStore):
    """
    In-memory metadata store that records every call.

    fail_on names a method that raises whenever it is called.
    """

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.exports: Dict[int, Export] = {}
        self.export_schemas: Dict[int, List[int]] = {}
        self.users: Dict[int, User] = {}
        self.connections: Dict[int, Connection] = {}
        self.schemas: Dict[int, Schema] = {}
        self.mappings: Dict[int, Mapping] = {}
        self._last_id = 0

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} rejected")

    def _next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    @property
    def writes(self) -> List[str]:
        return [c for c in self.calls if c.startswith(("insert_", "delete_"))]

    async def find_export_id(self, namespace):
        self._record("find_export_id")
        ids = [i for i, e in self.exports.items() if e.namespace == namespace]
        return max(ids) if ids else None

    async def delete_export(self, export_id):
        self._record("delete_export")
        del self.exports[export_id]
        self.export_schemas.pop(export_id, None)

    async def find_user_by_email(self, email):
        self._record("find_user_by_email")
        for user in self.users.values():
            if user.email == email:
                return copy.copy(user)
        return None

    async def insert_user(self, user):
        self._record("insert_user")
        user_id = self._next_id()
        self.users[user_id] = User(full_name=user.full_name, email=user.email, id=user_id)
        return user_id

    async def insert_connection(self, connection):
        self._record("insert_connection")
        connection_id = self._next_id()
        self.connections[connection_id] = copy.copy(connection)
        return connection_id

    async def insert_export(self, export, source_connection_id, destination_connection_id, user_id):
        self._record("insert_export")
        export_id = self._next_id()
        stored = copy.deepcopy(export)
        stored.id = export_id
        stored.schemas = []
        self.exports[export_id] = stored
        self.export_schemas[export_id] = []
        return export_id

    async def insert_schema(self, schema, export_id):
        self._record("insert_schema")
        schema_id = self._next_id()
        stored = copy.deepcopy(schema)
        stored.id = schema_id
        stored.mappings = []
        self.schemas[schema_id] = stored
        self.export_schemas[export_id].append(schema_id)
        return schema_id

    async def insert_mapping(self, mapping, schema_id):
        self._record("insert_mapping")
        mapping_id = self._next_id()
        stored = copy.copy(mapping)
        stored.id = mapping_id
        self.mappings[mapping_id] = stored
        self.schemas[schema_id].mappings.append(stored)
        return mapping_id

    async def load_export(self, namespace):
        self._record("load_export")
        export_id = await self.find_export_id(namespace)
        if export_id is None:
            return None
        export = copy.deepcopy(self.exports[export_id])
        export.schemas = [copy.deepcopy(self.schemas[i]) for i in self.export_schemas[export_id]]
        return export

    async def list_exports(self):
        self._record("list_exports")
        return sorted(
            (copy.deepcopy(e) for e in self.exports.values()),
            key=lambda e: e.namespace,
        )


class FakeSourceStore(SourceStore):
    """Source store serving one sample document per collection."""

    def __init__(self, documents: Dict[str, Optional[Dict[str, Any]]]):
        self.documents = documents
        self.sampled: List[str] = []
        self.closed = False

    async def list_collections(self):
        return list(self.documents)

    async def sample_one(self, collection):
        self.sampled.append(collection)
        return self.documents[collection]

    async def close(self):
        self.closed = True


class FakeDestinationStore(DestinationStore):
    """Destination store that records executed statements."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.statements: List[str] = []
        self.closed = False

    async def ping(self):
        return self.reachable

    async def execute(self, sql):
        self.statements.append(sql)
        return 0

    async def close(self):
        self.closed = True


@pytest.fixture
def test_settings():
    """Override settings for testing"""
    from schemaport.config.settings import Settings
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        output_dir="./test_mappings",
    )


@pytest.fixture
def fake_store():
    return FakeMetadataStore()


@pytest.fixture
def creator():
    return User(full_name="Ada Lovelace", email="ada@example.com")


@pytest.fixture
def sample_documents():
    return {
        "users": {
            "_id": "u1",
            "firstName": "Ada",
            "age": 36,
            "address": {"city": "London", "zipCode": "N1"},
            "tags": ["math", "poetry"],
        },
        "orderItems": {"sku": "X-1", "price": 9.5},
        "audit_log": None,
    }


@pytest.fixture
def fake_source(sample_documents):
    return FakeSourceStore(sample_documents)


@pytest.fixture
async def sqlite_engine():
    """In-memory SQLite metadata database shared across sessions."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return async_sessionmaker(
        sqlite_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
def sql_store(session_factory):
    return SqlMetadataStore(session_factory)
