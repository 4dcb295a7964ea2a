"""
Unit tests for the export builder state machine and save sequence.
"""

import pytest

from conftest import FakeMetadataStore
from schemaport.export.builder import BuilderState, ExportBuilder
from schemaport.export.errors import (
    BuilderStateError,
    ExportNotFoundError,
    PersistenceError,
    ValidationError,
)
from schemaport.export.model import ConnectionRole, Mapping, Schema, User


def make_schema(collection: str, field_count: int) -> Schema:
    return Schema(
        namespace="crm",
        collection=collection,
        sql_table=collection,
        version="1.0-default-generated",
        mappings=[
            Mapping(f"{collection}.f{i}", f"f{i}", "string", "text")
            for i in range(field_count)
        ],
    )


def configured_builder(store, creator) -> ExportBuilder:
    return (
        ExportBuilder(store)
        .init("crm", "mongo_to_postgres")
        .set_connection(ConnectionRole.SOURCE, "crm", "mongodb://localhost/crm")
        .set_connection(ConnectionRole.DESTINATION, "warehouse", "postgres://localhost/wh")
        .set_creator(creator)
    )


class TestBuilderConfiguration:
    """Tests for in-memory configuration."""

    def test_init_sets_empty_fields(self, fake_store):
        builder = ExportBuilder(fake_store).init("crm", "mongo_to_postgres")
        export = builder.get_export()

        assert builder.state == BuilderState.CONFIGURED
        assert export.namespace == "crm"
        assert export.export_type == "mongo_to_postgres"
        assert export.include_filters == []
        assert export.source_connection is None
        assert export.schemas == []

    def test_init_twice_fails(self, fake_store):
        builder = ExportBuilder(fake_store).init("crm", "mongo_to_postgres")
        with pytest.raises(BuilderStateError):
            builder.init("other", "mongo_to_postgres")

    def test_setter_before_init_fails(self, fake_store):
        with pytest.raises(BuilderStateError):
            ExportBuilder(fake_store).set_include_filters(["users"])

    def test_get_export_before_init_fails(self, fake_store):
        with pytest.raises(BuilderStateError):
            ExportBuilder(fake_store).get_export()

    def test_setters_overwrite(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.set_include_filters(["a", "b"]).set_include_filters(["c", "c"])
        builder.set_connection(ConnectionRole.SOURCE, "other", "mongodb://other/db")

        export = builder.get_export()
        assert export.include_filters == ["c", "c"]
        assert export.source_connection.name == "other"

    def test_connection_role_accepts_string(self, fake_store):
        builder = ExportBuilder(fake_store).init("crm", "mongo_to_postgres")
        builder.set_connection("destination", "wh", "postgres://localhost/wh")
        assert builder.get_export().destination_connection.name == "wh"

    def test_attach_schemas_replaces(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.attach_schemas([make_schema("users", 1), make_schema("orders", 1)])
        builder.attach_schemas([make_schema("events", 2)])

        assert builder.state == BuilderState.POPULATED
        assert [s.collection for s in builder.get_export().schemas] == ["events"]

    def test_export_json_has_no_ids(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.attach_schemas([make_schema("users", 1)])
        payload = builder.get_export_json()

        assert "id" not in payload
        assert "id" not in payload["creator"]
        assert "id" not in payload["source_connection"]
        assert payload["schemas"] == ["users"]
        assert payload["type"] == "mongo_to_postgres"


class TestBuilderValidation:
    """Tests for validation before any store access."""

    @pytest.mark.asyncio
    async def test_missing_creator(self, fake_store):
        builder = (
            ExportBuilder(fake_store)
            .init("crm", "mongo_to_postgres")
            .set_connection(ConnectionRole.SOURCE, "crm", "mongodb://localhost/crm")
            .set_connection(ConnectionRole.DESTINATION, "wh", "postgres://localhost/wh")
        )

        with pytest.raises(ValidationError) as exc_info:
            await builder.save()

        assert exc_info.value.field == "creator"
        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_missing_source_connection(self, fake_store, creator):
        builder = ExportBuilder(fake_store).init("crm", "mongo_to_postgres").set_creator(creator)

        with pytest.raises(ValidationError) as exc_info:
            await builder.save()

        assert exc_info.value.field == "source_connection"
        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_missing_destination_connection(self, fake_store, creator):
        builder = (
            ExportBuilder(fake_store)
            .init("crm", "mongo_to_postgres")
            .set_creator(creator)
            .set_connection(ConnectionRole.SOURCE, "crm", "mongodb://localhost/crm")
        )

        with pytest.raises(ValidationError) as exc_info:
            await builder.save()

        assert exc_info.value.field == "destination_connection"
        assert fake_store.writes == []

    @pytest.mark.asyncio
    async def test_save_before_init_fails(self, fake_store):
        with pytest.raises(BuilderStateError):
            await ExportBuilder(fake_store).save()


class TestBuilderSave:
    """Tests for the save sequence."""

    @pytest.mark.asyncio
    async def test_save_assigns_ids(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.attach_schemas([make_schema("users", 2), make_schema("orders", 3)])

        export = await builder.save()

        assert builder.state == BuilderState.PERSISTED
        assert export.id is not None
        assert export.source_connection.id is not None
        assert export.destination_connection.id is not None
        assert export.creator.id is not None
        assert export.updator.id == export.creator.id
        assert all(s.id is not None for s in export.schemas)
        assert all(m.id is not None for s in export.schemas for m in s.mappings)

    @pytest.mark.asyncio
    async def test_n_schemas_and_sum_of_mappings(self, fake_store, creator):
        counts = {"users": 2, "orders": 0, "events": 4}
        builder = configured_builder(fake_store, creator)
        builder.attach_schemas([make_schema(c, n) for c, n in counts.items()])

        await builder.save()

        assert fake_store.calls.count("insert_schema") == 3
        assert fake_store.calls.count("insert_mapping") == sum(counts.values())
        assert len(fake_store.schemas) == 3
        assert len(fake_store.mappings) == 6

    @pytest.mark.asyncio
    async def test_save_order(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.attach_schemas([make_schema("users", 1)])

        await builder.save()

        assert fake_store.calls == [
            "find_export_id",
            "find_user_by_email",
            "insert_user",
            "insert_connection",
            "insert_connection",
            "insert_export",
            "insert_schema",
            "insert_mapping",
        ]

    @pytest.mark.asyncio
    async def test_timestamps_stamped_at_save(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        assert builder.get_export().created_at is None

        export = await builder.save()

        assert export.created_at is not None
        assert export.created_at == export.updated_at

    @pytest.mark.asyncio
    async def test_save_without_schemas(self, fake_store, creator):
        export = await configured_builder(fake_store, creator).save()

        assert export.id is not None
        assert "insert_schema" not in fake_store.calls

    @pytest.mark.asyncio
    async def test_save_twice_leaves_one_export(self, fake_store, creator):
        first = await configured_builder(fake_store, creator).save()
        first_id = first.id

        second = await configured_builder(fake_store, User("Ada L.", creator.email)).save()

        assert second.id != first_id
        assert list(fake_store.exports) == [second.id]
        assert await fake_store.find_export_id("crm") == second.id
        assert "delete_export" in fake_store.calls

    @pytest.mark.asyncio
    async def test_existing_user_reused(self, fake_store, creator):
        await configured_builder(fake_store, creator).save()
        second = await configured_builder(
            fake_store, User(full_name="Someone", email=creator.email)).save()

        assert fake_store.calls.count("insert_user") == 1
        assert len(fake_store.users) == 1
        assert second.creator.id == next(iter(fake_store.users))

    @pytest.mark.asyncio
    async def test_connections_never_reused(self, fake_store, creator):
        await configured_builder(fake_store, creator).save()
        await configured_builder(fake_store, creator).save()

        assert len(fake_store.connections) == 4

    @pytest.mark.asyncio
    async def test_edit_after_save_returns_to_populated(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.attach_schemas([make_schema("users", 1)])
        await builder.save()

        builder.set_exclude_filters(["orders"])

        assert builder.state == BuilderState.POPULATED
        await builder.save()
        assert len(fake_store.exports) == 1


class TestBuilderPersistenceFailures:
    """Tests for failure attribution during save."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fail_on,step", [
        ("find_export_id", "export_lookup"),
        ("insert_user", "user"),
        ("insert_connection", "connection"),
        ("insert_export", "export"),
    ])
    async def test_step_attribution(self, creator, fail_on, step):
        store = FakeMetadataStore(fail_on=fail_on)
        builder = configured_builder(store, creator)

        with pytest.raises(PersistenceError) as exc_info:
            await builder.save()

        assert exc_info.value.step == step
        assert builder.state == BuilderState.CONFIGURED

    @pytest.mark.asyncio
    async def test_delete_failure_aborts(self, creator):
        store = FakeMetadataStore()
        await configured_builder(store, creator).save()
        store.fail_on = "delete_export"
        store.calls.clear()

        with pytest.raises(PersistenceError) as exc_info:
            await configured_builder(store, creator).save()

        assert exc_info.value.step == "export_delete"
        assert store.calls == ["find_export_id", "delete_export"]

    @pytest.mark.asyncio
    async def test_schema_failure_names_collection(self, creator):
        store = FakeMetadataStore(fail_on="insert_schema")
        builder = configured_builder(store, creator)
        builder.attach_schemas([make_schema("users", 1)])

        with pytest.raises(PersistenceError) as exc_info:
            await builder.save()

        assert exc_info.value.step == "schema"
        assert exc_info.value.collection == "users"

    @pytest.mark.asyncio
    async def test_mapping_failure_leaves_partial_rows(self, creator):
        store = FakeMetadataStore(fail_on="insert_mapping")
        builder = configured_builder(store, creator)
        builder.attach_schemas([make_schema("users", 2)])

        with pytest.raises(PersistenceError) as exc_info:
            await builder.save()

        error = exc_info.value
        assert error.step == "mapping"
        assert error.collection == "users"
        assert error.field == "users.f0"
        assert "collection=users" in str(error)

        # Stores without transactions keep what was written before the failure
        assert len(store.exports) == 1
        assert len(store.schemas) == 1
        assert store.mappings == {}

    @pytest.mark.asyncio
    async def test_failed_save_keeps_export_unsaved(self, creator):
        store = FakeMetadataStore(fail_on="insert_mapping")
        builder = configured_builder(store, creator)
        builder.attach_schemas([make_schema("users", 2)])

        with pytest.raises(PersistenceError):
            await builder.save()

        export = builder.get_export()
        assert export.id is None
        assert export.created_at is None
        assert export.creator.id is None
        assert export.source_connection.id is None
        assert export.schemas[0].id is None
        assert builder.state == BuilderState.POPULATED

    @pytest.mark.asyncio
    async def test_retry_after_failure_saves(self, creator):
        store = FakeMetadataStore(fail_on="insert_export")
        builder = configured_builder(store, creator)

        with pytest.raises(PersistenceError):
            await builder.save()
        store.fail_on = None

        export = await builder.save()

        assert export.id is not None
        assert builder.get_export() is export


class TestBuilderLoad:
    """Tests for loading stored exports."""

    @pytest.mark.asyncio
    async def test_load_existing(self, fake_store, creator):
        builder = configured_builder(fake_store, creator)
        builder.set_include_filters(["users"])
        builder.attach_schemas([make_schema("users", 2)])
        saved = await builder.save()

        loaded_builder = ExportBuilder(fake_store)
        loaded = await loaded_builder.load("crm")

        assert loaded_builder.state == BuilderState.RELOADED
        assert loaded.id == saved.id
        assert loaded.include_filters == ["users"]
        assert [len(s.mappings) for s in loaded.schemas] == [2]

    @pytest.mark.asyncio
    async def test_load_missing(self, fake_store):
        with pytest.raises(ExportNotFoundError):
            await ExportBuilder(fake_store).load("missing")

    @pytest.mark.asyncio
    async def test_load_on_configured_builder_fails(self, fake_store):
        builder = ExportBuilder(fake_store).init("crm", "mongo_to_postgres")
        with pytest.raises(BuilderStateError):
            await builder.load("crm")
