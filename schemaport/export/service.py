"""
Export operations used by the CLI and the admin console.

Wires the export builder to the metadata store, the source and
destination stores, and the snapshot writer.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from schemaport.catalog.store import MetadataStore
from schemaport.common.logging_config import PerformanceTracker
from schemaport.config.settings import get_settings
from schemaport.discovery.ddl_generator import DDLGenerator
from schemaport.discovery.schema_assembler import SchemaAssembler, filter_collections
from schemaport.export.builder import ExportBuilder, persistence_step
from schemaport.export.errors import (
    DestinationStoreError,
    ExportExistsError,
    ExportNotFoundError,
    PersistenceError,
    SourceStoreError,
    ValidationError,
)
from schemaport.export.model import Connection, ConnectionRole, Export, User
from schemaport.export.snapshots import SnapshotWriter
from schemaport.stores.adapter import DestinationStore, SourceStore
from schemaport.stores.factory import get_destination_store, get_source_store

logger = logging.getLogger(__name__)

SourceFactory = Callable[[Connection], SourceStore]
DestinationFactory = Callable[[str, Connection], DestinationStore]


@dataclass
class InitData:
    """Answers collected when initializing an export."""
    source_database_name: str
    source_connection_string: str
    destination_database_name: str
    destination_connection_string: str
    user_name: str
    email: str
    destination_database_type: str = "postgres"
    include_collections: List[str] = field(default_factory=list)
    exclude_collections: List[str] = field(default_factory=list)


def parse_collection_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated collection list, dropping blanks."""
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


class ExportService:
    """
    High-level export operations.

    Store factories can be replaced for tests.
    """

    def __init__(
        self,
        store: MetadataStore,
        source_factory: SourceFactory = get_source_store,
        destination_factory: DestinationFactory = get_destination_store,
    ):
        self.store = store
        self.source_factory = source_factory
        self.destination_factory = destination_factory
        self.ddl = DDLGenerator()

    def _open_source(self, connection: Connection) -> SourceStore:
        try:
            return self.source_factory(connection)
        except ValueError as e:
            raise SourceStoreError(str(e)) from e

    def _open_destination(self, export: Export) -> DestinationStore:
        try:
            return self.destination_factory(export.export_type, export.destination_connection)
        except ValueError as e:
            raise DestinationStoreError(str(e)) from e

    async def initialize_export(self, namespace: str, data: InitData) -> Export:
        """
        Save a new export definition without schemas.

        Raises:
            ExportExistsError: If the namespace already has an export
        """
        if await self._find_export_id(namespace) is not None:
            raise ExportExistsError(namespace)

        user = User(full_name=data.user_name, email=data.email)
        builder = ExportBuilder(self.store)
        builder.init(namespace, f"mongo_to_{data.destination_database_type.lower()}")
        builder.set_connection(
            ConnectionRole.SOURCE,
            data.source_database_name,
            data.source_connection_string,
        )
        builder.set_connection(
            ConnectionRole.DESTINATION,
            data.destination_database_name,
            data.destination_connection_string,
        )
        builder.set_include_filters(data.include_collections)
        builder.set_exclude_filters(data.exclude_collections)
        builder.set_creator(user)
        builder.set_updator(user)

        export = await builder.save()
        logger.info(f"Initialized export {namespace} ({export.export_type})")
        return export

    async def generate_schema_mapping(self, namespace: str, dir_path: Optional[str] = None) -> Export:
        """
        Generate default schemas for an export from its source database.

        Samples one document per eligible collection, saves the export
        with the generated schemas, and writes JSON snapshots to dir_path.

        Raises:
            ExportNotFoundError: If the namespace has no export
            SourceStoreError: If listing or sampling fails, or no collection is eligible
            PersistenceError: If saving fails
            PathError: If snapshots cannot be written
        """
        output_dir = dir_path or get_settings().output_dir

        builder = ExportBuilder(self.store)
        export = await builder.load(namespace)

        with PerformanceTracker("generate_schema_mapping", logger, namespace=namespace):
            source = self._open_source(export.source_connection)
            try:
                collections = await source.list_collections()
                if not collections:
                    raise SourceStoreError("no collections found")

                selected = filter_collections(
                    collections, export.include_filters, export.exclude_filters)
                logger.info(
                    f"Generating schemas for {len(selected)} of "
                    f"{len(collections)} collections"
                )
                schemas = await SchemaAssembler(source, namespace).assemble_all(selected)
            finally:
                await source.close()

            builder.attach_schemas(schemas)
            export = await builder.save()

        SnapshotWriter(output_dir).write_all(export)
        return export

    async def _find_export_id(self, namespace: str) -> Optional[int]:
        return await persistence_step("export_lookup", self.store.find_export_id(namespace))

    async def list_exports(self) -> List[Export]:
        return await persistence_step("export_list", self.store.list_exports())

    async def show_export(self, namespace: str) -> Export:
        export = await persistence_step("export_lookup", self.store.load_export(namespace))
        if export is None:
            raise ExportNotFoundError(namespace)
        return export

    async def delete_export(self, namespace: str) -> None:
        """
        Delete the export row for a namespace.

        Schema rows are kept with their export reference cleared.
        """
        export_id = await self._find_export_id(namespace)
        if export_id is None:
            raise ExportNotFoundError(namespace)

        try:
            async with self.store.transaction():
                await persistence_step("export_delete", self.store.delete_export(export_id))
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError("commit", str(e)) from e
        logger.info(f"Deleted export {namespace} (id={export_id})")

    async def generate_ddl(self, namespace: str) -> List[str]:
        """Return the destination DDL statements for an export's schemas."""
        export = await self.show_export(namespace)

        statements = [self.ddl.create_schema_if_not_exists(namespace)]
        statements.extend(self.ddl.create_if_not_exists(s) for s in export.schemas)
        return statements

    async def start_full_export(self, namespace: str) -> None:
        """
        Prepare destination tables for a full export.

        Tables are created if missing and truncated. Copying documents is
        not supported yet, so this always ends with NotImplementedError
        once the tables are ready.

        Raises:
            ValidationError: If the export has no schemas
            DestinationStoreError: If the destination is unreachable
        """
        export = await self.show_export(namespace)
        if not export.schemas:
            raise ValidationError("schemas")

        destination = self._open_destination(export)
        try:
            if not await destination.ping():
                raise DestinationStoreError("destination database is unreachable")

            with PerformanceTracker("prepare_tables", logger, namespace=namespace):
                await destination.prepare_tables(export.schemas)
        finally:
            await destination.close()

        logger.warning(f"Destination tables for {namespace} are ready; data copy is not implemented")
        raise NotImplementedError("full export data copy is not implemented")
