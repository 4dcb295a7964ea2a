"""
Export definition builder.

Accumulates an Export in memory, validates it, and replaces the stored
definition for its namespace through a MetadataStore.
"""

import copy
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from schemaport.catalog.store import MetadataStore
from schemaport.common.logging_config import PerformanceTracker
from schemaport.export.errors import (
    BuilderStateError,
    ExportNotFoundError,
    PersistenceError,
    ValidationError,
)
from schemaport.export.model import Connection, ConnectionRole, Export, Schema, User

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def persistence_step(
    step: str,
    operation: Awaitable[T],
    collection: Optional[str] = None,
    field: Optional[str] = None,
) -> T:
    """Await a metadata store call, reporting failures as PersistenceError(step)."""
    try:
        return await operation
    except PersistenceError:
        raise
    except Exception as e:
        raise PersistenceError(step, str(e), collection=collection, field=field) from e


class BuilderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    POPULATED = "populated"
    PERSISTED = "persisted"
    RELOADED = "reloaded"


class ExportBuilder:
    """
    Stateful builder for one export definition.

    Usage:
        builder = ExportBuilder(store)
        builder.init("crm", "mongo_to_postgres")
        builder.set_connection(ConnectionRole.SOURCE, "crm", "mongodb://...")
        builder.set_connection(ConnectionRole.DESTINATION, "warehouse", "postgres://...")
        builder.set_creator(User(full_name="Ada", email="ada@example.com"))
        await builder.save()

    Setters overwrite the named field and return the builder. Calling an
    operation from the wrong state raises BuilderStateError.
    """

    def __init__(self, store: MetadataStore):
        self.store = store
        self.state = BuilderState.UNINITIALIZED
        self._export: Optional[Export] = None

    # ==================== Configuration ====================

    def init(self, namespace: str, export_type: str) -> "ExportBuilder":
        if self.state != BuilderState.UNINITIALIZED:
            raise BuilderStateError(f"init called on a {self.state.value} builder")

        self._export = Export(namespace=namespace, export_type=export_type)
        self.state = BuilderState.CONFIGURED
        return self

    def set_connection(self, role: ConnectionRole, name: str, uri: str) -> "ExportBuilder":
        export = self._editable("set_connection")
        connection = Connection(name=name, connection_string=uri)

        if ConnectionRole(role) == ConnectionRole.SOURCE:
            export.source_connection = connection
        else:
            export.destination_connection = connection
        return self

    def set_include_filters(self, filters: List[str]) -> "ExportBuilder":
        self._editable("set_include_filters").include_filters = list(filters)
        return self

    def set_exclude_filters(self, filters: List[str]) -> "ExportBuilder":
        self._editable("set_exclude_filters").exclude_filters = list(filters)
        return self

    def set_creator(self, user: User) -> "ExportBuilder":
        self._editable("set_creator").creator = user
        return self

    def set_updator(self, user: User) -> "ExportBuilder":
        self._editable("set_updator").updator = user
        return self

    def attach_schemas(self, schemas: List[Schema]) -> "ExportBuilder":
        """Replace the attached schemas wholesale."""
        self._editable("attach_schemas").schemas = list(schemas)
        self.state = BuilderState.POPULATED
        return self

    def _editable(self, operation: str) -> Export:
        if self._export is None:
            raise BuilderStateError(f"{operation} called before init")

        # Editing a stored definition makes it pending again
        if self.state in (BuilderState.PERSISTED, BuilderState.RELOADED):
            self.state = (
                BuilderState.POPULATED if self._export.schemas else BuilderState.CONFIGURED
            )
        return self._export

    # ==================== Accessors ====================

    def get_export(self) -> Export:
        if self._export is None:
            raise BuilderStateError("no export: call init or load first")
        return self._export

    def get_export_json(self) -> Dict[str, Any]:
        """Return the export as a JSON-ready dict without store-assigned ids."""
        return self.get_export().to_json()

    # ==================== Persistence ====================

    def validate(self) -> None:
        """
        Check that the export can be saved.

        Raises:
            ValidationError: Naming the first missing field
        """
        export = self.get_export()

        if export.creator is None:
            raise ValidationError("creator")
        if export.source_connection is None:
            raise ValidationError("source_connection")
        if export.destination_connection is None:
            raise ValidationError("destination_connection")

    async def save(self) -> Export:
        """
        Replace the stored export for this namespace with the in-memory one.

        The previous export row for the namespace is deleted first. The
        whole sequence runs inside the store's transaction; stores without
        transactions may be left partially written when a step fails.

        Store-assigned ids and timestamps are applied to a copy of the
        export, which becomes the builder's export only after the store
        commits. A failed save leaves the in-memory export untouched.

        Returns:
            The saved export with store-assigned ids

        Raises:
            ValidationError: If creator or a connection is missing (no store access)
            PersistenceError: If a store step fails
        """
        self.validate()
        export = copy.deepcopy(self.get_export())

        with PerformanceTracker(
            "export_save", logger,
            namespace=export.namespace,
            schema_count=len(export.schemas),
        ):
            try:
                async with self.store.transaction():
                    await self._persist(export)
            except PersistenceError:
                raise
            except Exception as e:
                raise PersistenceError("commit", str(e)) from e

        self._export = export
        self.state = BuilderState.PERSISTED
        logger.info(
            f"Saved export {export.namespace} (id={export.id}) "
            f"with {len(export.schemas)} schemas"
        )
        return export

    async def _persist(self, export: Export) -> None:
        existing_id = await persistence_step(
            "export_lookup", self.store.find_export_id(export.namespace))
        if existing_id is not None:
            await persistence_step("export_delete", self.store.delete_export(existing_id))
            logger.info(f"Replacing export {export.namespace} (previous id={existing_id})")

        user_id = await self._resolve_creator(export.creator)
        creator = export.creator
        creator.id = user_id
        export.updator = User(
            full_name=creator.full_name,
            email=creator.email,
            id=user_id,
            created_at=creator.created_at,
        )

        for connection in (export.source_connection, export.destination_connection):
            connection.id = await persistence_step(
                "connection", self.store.insert_connection(connection))

        now = datetime.now(timezone.utc)
        export.created_at = now
        export.updated_at = now
        export.id = await persistence_step(
            "export",
            self.store.insert_export(
                export,
                export.source_connection.id,
                export.destination_connection.id,
                user_id,
            ),
        )

        for schema in export.schemas:
            schema.id = await persistence_step(
                "schema",
                self.store.insert_schema(schema, export.id),
                collection=schema.collection,
            )
            for mapping in schema.mappings:
                mapping.id = await persistence_step(
                    "mapping",
                    self.store.insert_mapping(mapping, schema.id),
                    collection=schema.collection,
                    field=mapping.source_field_name,
                )

    async def _resolve_creator(self, creator: User) -> int:
        existing = await persistence_step("user", self.store.find_user_by_email(creator.email))
        if existing is not None:
            logger.debug(f"Reusing user {existing.id} for {creator.email}")
            if creator.created_at is None:
                creator.created_at = existing.created_at
            return existing.id
        return await persistence_step("user", self.store.insert_user(creator))

    async def load(self, namespace: str) -> Export:
        """
        Load the stored export for a namespace into this builder.

        Raises:
            BuilderStateError: If the builder already holds an export
            ExportNotFoundError: If no export is stored for the namespace
            PersistenceError: If the store read fails
        """
        if self.state != BuilderState.UNINITIALIZED:
            raise BuilderStateError(f"load called on a {self.state.value} builder")

        export = await persistence_step("export_lookup", self.store.load_export(namespace))
        if export is None:
            raise ExportNotFoundError(namespace)

        self._export = export
        self.state = BuilderState.RELOADED
        logger.debug(f"Loaded export {namespace} with {len(export.schemas)} schemas")
        return export
