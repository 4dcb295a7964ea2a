"""
Metadata store operations for export definitions.

The export builder drives these one step at a time. SqlMetadataStore
implements them over the SQLAlchemy catalog models.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from schemaport.catalog.models import (
    ConnectionRecord,
    ExportRecord,
    MappingRecord,
    SchemaRecord,
    UserRecord,
)
from schemaport.export.model import Connection, Export, Mapping, Schema, User

logger = logging.getLogger(__name__)

FILTER_SEPARATOR = ","


def join_filters(filters: List[str]) -> str:
    return FILTER_SEPARATOR.join(filters)


def split_filters(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return value.split(FILTER_SEPARATOR)


class MetadataStore(ABC):
    """
    Persistence operations needed to save and load export definitions.

    Insert methods return the store-assigned id.
    """

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Group the calls made inside the block.

        Stores without transactions apply each call immediately.
        """
        yield

    @abstractmethod
    async def find_export_id(self, namespace: str) -> Optional[int]:
        pass

    @abstractmethod
    async def delete_export(self, export_id: int) -> None:
        pass

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def insert_user(self, user: User) -> int:
        pass

    @abstractmethod
    async def insert_connection(self, connection: Connection) -> int:
        pass

    @abstractmethod
    async def insert_export(
        self,
        export: Export,
        source_connection_id: int,
        destination_connection_id: int,
        user_id: int,
    ) -> int:
        pass

    @abstractmethod
    async def insert_schema(self, schema: Schema, export_id: int) -> int:
        pass

    @abstractmethod
    async def insert_mapping(self, mapping: Mapping, schema_id: int) -> int:
        pass

    @abstractmethod
    async def load_export(self, namespace: str) -> Optional[Export]:
        """Load an export with its connections, users, schemas and mappings."""
        pass

    @abstractmethod
    async def list_exports(self) -> List[Export]:
        """List exports without schemas, ordered by namespace."""
        pass


class SqlMetadataStore(MetadataStore):
    """
    Metadata store over an SQLAlchemy async session factory.

    Inside transaction() every call shares one session that is committed
    at the end of the block, or rolled back if the block raises. Outside
    it each call commits on its own.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._session is not None:
            yield
            return

        session = self.session_factory()
        self._session = session
        try:
            yield
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            self._session = None
            await session.close()

    @asynccontextmanager
    async def _scope(self) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            yield self._session
            return

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def find_export_id(self, namespace: str) -> Optional[int]:
        async with self._scope() as session:
            result = await session.execute(
                select(ExportRecord.id)
                .where(ExportRecord.namespace == namespace)
                .order_by(ExportRecord.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def delete_export(self, export_id: int) -> None:
        async with self._scope() as session:
            await session.execute(delete(ExportRecord).where(ExportRecord.id == export_id))
        logger.debug(f"Deleted export row {export_id}")

    async def find_user_by_email(self, email: str) -> Optional[User]:
        async with self._scope() as session:
            result = await session.execute(
                select(UserRecord)
                .where(UserRecord.email == email)
                .order_by(UserRecord.id)
                .limit(1)
            )
            record = result.scalar_one_or_none()
            return self._to_user(record) if record else None

    async def insert_user(self, user: User) -> int:
        async with self._scope() as session:
            record = UserRecord(full_name=user.full_name, email=user.email)
            if user.created_at:
                record.created_at = user.created_at
            session.add(record)
            await session.flush()
            return record.id

    async def insert_connection(self, connection: Connection) -> int:
        async with self._scope() as session:
            record = ConnectionRecord(
                name=connection.name,
                connection_string=connection.connection_string,
            )
            session.add(record)
            await session.flush()
            return record.id

    async def insert_export(
        self,
        export: Export,
        source_connection_id: int,
        destination_connection_id: int,
        user_id: int,
    ) -> int:
        async with self._scope() as session:
            record = ExportRecord(
                namespace=export.namespace,
                type=export.export_type,
                created_at=export.created_at,
                updated_at=export.updated_at,
                source_connection_id=source_connection_id,
                destination_connection_id=destination_connection_id,
                include_filters=join_filters(export.include_filters),
                exclude_filters=join_filters(export.exclude_filters),
                creator_id=user_id,
                updator_id=user_id,
            )
            session.add(record)
            await session.flush()
            return record.id

    async def insert_schema(self, schema: Schema, export_id: int) -> int:
        async with self._scope() as session:
            record = SchemaRecord(
                export_id=export_id,
                namespace=schema.namespace,
                collection=schema.collection,
                sql_table=schema.sql_table,
                version=schema.version,
                indexes=schema.indexes,
            )
            session.add(record)
            await session.flush()
            return record.id

    async def insert_mapping(self, mapping: Mapping, schema_id: int) -> int:
        async with self._scope() as session:
            record = MappingRecord(
                schema_id=schema_id,
                source_field_name=mapping.source_field_name,
                destination_field_name=mapping.destination_field_name,
                source_field_type=mapping.source_field_type,
                destination_field_type=mapping.destination_field_type,
                version=mapping.version,
            )
            session.add(record)
            await session.flush()
            return record.id

    async def load_export(self, namespace: str) -> Optional[Export]:
        async with self._scope() as session:
            result = await session.execute(
                select(ExportRecord)
                .where(ExportRecord.namespace == namespace)
                .order_by(ExportRecord.id.desc())
                .limit(1)
                .options(
                    selectinload(ExportRecord.source_connection),
                    selectinload(ExportRecord.destination_connection),
                    selectinload(ExportRecord.creator),
                    selectinload(ExportRecord.updator),
                    selectinload(ExportRecord.schemas).selectinload(SchemaRecord.mappings),
                )
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None

            export = self._to_export(record)
            export.schemas = [self._to_schema(s) for s in record.schemas]
            return export

    async def list_exports(self) -> List[Export]:
        async with self._scope() as session:
            result = await session.execute(
                select(ExportRecord)
                .order_by(ExportRecord.namespace, ExportRecord.id)
                .options(
                    selectinload(ExportRecord.source_connection),
                    selectinload(ExportRecord.destination_connection),
                    selectinload(ExportRecord.creator),
                    selectinload(ExportRecord.updator),
                )
            )
            return [self._to_export(r) for r in result.scalars().all()]

    # ==================== Record conversion ====================

    @staticmethod
    def _to_user(record: UserRecord) -> User:
        return User(
            id=record.id,
            full_name=record.full_name,
            email=record.email,
            created_at=record.created_at,
        )

    @staticmethod
    def _to_connection(record: ConnectionRecord) -> Connection:
        return Connection(
            id=record.id,
            name=record.name,
            connection_string=record.connection_string,
        )

    def _to_export(self, record: ExportRecord) -> Export:
        return Export(
            id=record.id,
            namespace=record.namespace,
            export_type=record.type,
            include_filters=split_filters(record.include_filters),
            exclude_filters=split_filters(record.exclude_filters),
            source_connection=self._to_connection(record.source_connection),
            destination_connection=self._to_connection(record.destination_connection),
            creator=self._to_user(record.creator),
            updator=self._to_user(record.updator),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _to_schema(record: SchemaRecord) -> Schema:
        return Schema(
            id=record.id,
            namespace=record.namespace,
            collection=record.collection,
            sql_table=record.sql_table,
            version=record.version,
            indexes=record.indexes or "",
            mappings=[
                Mapping(
                    id=m.id,
                    source_field_name=m.source_field_name,
                    destination_field_name=m.destination_field_name,
                    source_field_type=m.source_field_type,
                    destination_field_type=m.destination_field_type,
                    version=m.version,
                )
                for m in record.mappings
            ],
        )
