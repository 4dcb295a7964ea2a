"""Command line interface for managing export definitions."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Callable, List, Optional

import uvicorn
from alembic.util import CommandError
from sqlalchemy.exc import SQLAlchemyError

from schemaport.catalog import migrate
from schemaport.catalog.database import dispose_engine, get_session_factory, init_db
from schemaport.catalog.store import SqlMetadataStore
from schemaport.common.logging_config import clear_run_id, set_run_id, setup_logging
from schemaport.config.settings import get_settings
from schemaport.export.errors import SchemaportError
from schemaport.export.model import Export
from schemaport.export.service import ExportService, InitData, parse_collection_list

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]


def _ask(prompt: Prompt, label: str, value: Optional[str], default: Optional[str] = None) -> str:
    """Return value if given on the command line, otherwise prompt for it."""
    if value is not None:
        return value

    suffix = f" [{default}]" if default else ""
    answer = prompt(f"{label}{suffix}: ").strip()
    return answer or (default or "")


def collect_init_data(args: argparse.Namespace, prompt: Prompt = input) -> InitData:
    """Build InitData from flags, prompting for anything not supplied."""
    settings = get_settings()

    source_uri = _ask(prompt, "Source MongoDB connection string", args.source_uri)
    source_name = _ask(prompt, "Source database name", args.source_name)
    destination_type = _ask(
        prompt, "Destination database type", args.destination_type,
        default=settings.default_destination_type,
    )
    destination_uri = _ask(prompt, "Destination connection string", args.destination_uri)
    destination_name = _ask(prompt, "Destination database name", args.destination_name)
    include = _ask(prompt, "Collections to include (comma separated)", args.include)
    exclude = ""
    if not include:
        exclude = _ask(prompt, "Collections to exclude (comma separated)", args.exclude)
    user_name = _ask(prompt, "Your name", args.user_name)
    email = _ask(prompt, "Your email", args.email)

    return InitData(
        source_database_name=source_name,
        source_connection_string=source_uri,
        destination_database_name=destination_name,
        destination_connection_string=destination_uri,
        destination_database_type=destination_type,
        user_name=user_name,
        email=email,
        include_collections=parse_collection_list(include),
        exclude_collections=parse_collection_list(exclude),
    )


def _print_export(export: Export) -> None:
    payload = export.to_json()
    payload["schemas"] = [
        {
            "collection": schema.collection,
            "sql_table": schema.sql_table,
            "version": schema.version,
            "mappings": [
                f"{m.source_field_name} ({m.source_field_type}) -> "
                f"{m.destination_field_name} {m.destination_field_type}"
                for m in schema.mappings
            ],
        }
        for schema in export.schemas
    ]
    print(json.dumps(payload, indent=2))


async def run_export_command(
    args: argparse.Namespace,
    service: ExportService,
    init_data: Optional[InitData] = None,
) -> int:
    """
    Dispatch one `export` subcommand. Returns the process exit code.

    `init` needs init_data, collected by collect_init_data before the event
    loop starts so prompting never blocks it.
    """
    command = args.export_command

    if command == "init":
        if init_data is None:
            raise ValueError("export init requires collected init data")
        export = await service.initialize_export(args.namespace, init_data)
        print(f"Export '{export.namespace}' initialized (id={export.id})")

    elif command == "generate-mappings":
        export = await service.generate_schema_mapping(args.namespace, args.output_dir)
        mapping_count = sum(len(s.mappings) for s in export.schemas)
        print(
            f"Generated {len(export.schemas)} schemas with {mapping_count} mappings "
            f"for export '{export.namespace}'"
        )

    elif command == "list":
        exports = await service.list_exports()
        if not exports:
            print("No exports found")
        for export in exports:
            print(f"{export.namespace}\t{export.export_type}\t{export.updated_at}")

    elif command == "show":
        _print_export(await service.show_export(args.namespace))

    elif command == "delete":
        await service.delete_export(args.namespace)
        print(f"Export '{args.namespace}' deleted")

    elif command == "ddl":
        for statement in await service.generate_ddl(args.namespace):
            print(f"{statement};\n")

    elif command == "start":
        try:
            await service.start_full_export(args.namespace)
        except NotImplementedError as e:
            print(f"Destination tables prepared. {e}", file=sys.stderr)
            return 1

    return 0


async def _run_export(args: argparse.Namespace, init_data: Optional[InitData] = None) -> int:
    await init_db()
    try:
        service = ExportService(SqlMetadataStore(get_session_factory()))
        return await run_export_command(args, service, init_data)
    finally:
        await dispose_engine()


def run_db(args: argparse.Namespace) -> int:
    """Apply or roll back metadata migrations."""
    try:
        if args.db_command == "upgrade":
            migrate.upgrade(args.revision or "head")
        else:
            migrate.downgrade(args.revision or "-1")
    except (CommandError, SQLAlchemyError, FileNotFoundError) as e:
        logger.error(f"Migration {args.db_command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Metadata database {args.db_command} complete")
    return 0


def run_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    uvicorn.run(
        "schemaport.admin.app:app",
        host=args.host or settings.admin_host,
        port=args.port or settings.admin_port,
        reload=settings.debug,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemaport",
        description="Discover MongoDB schemas and manage export definitions",
    )
    parser.add_argument("--log-level", help="Log level (default from settings)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Export definitions
    export_parser = subparsers.add_parser("export", help="Manage export definitions")
    export_sub = export_parser.add_subparsers(dest="export_command", help="Export commands")

    init_parser = export_sub.add_parser("init", help="Initialize a new export")
    init_parser.add_argument("namespace", help="Export namespace")
    init_parser.add_argument("--source-uri", help="Source MongoDB connection string")
    init_parser.add_argument("--source-name", help="Source database name")
    init_parser.add_argument("--destination-uri", help="Destination connection string")
    init_parser.add_argument("--destination-name", help="Destination database name")
    init_parser.add_argument("--destination-type", help="Destination database type")
    init_parser.add_argument("--include", help="Comma-separated collections to include")
    init_parser.add_argument("--exclude", help="Comma-separated collections to exclude")
    init_parser.add_argument("--user-name", help="Creator's full name")
    init_parser.add_argument("--email", help="Creator's email")

    generate_parser = export_sub.add_parser(
        "generate-mappings", help="Generate default schema mappings from the source")
    generate_parser.add_argument("namespace", help="Export namespace")
    generate_parser.add_argument("--output-dir", help="Directory for JSON snapshots")

    export_sub.add_parser("list", help="List exports")

    for name, help_text in (
        ("show", "Show an export with its schemas"),
        ("delete", "Delete an export"),
        ("ddl", "Print destination DDL for an export"),
        ("start", "Prepare destination tables and start a full export"),
    ):
        sub = export_sub.add_parser(name, help=help_text)
        sub.add_argument("namespace", help="Export namespace")

    # Metadata migrations
    db_parser = subparsers.add_parser("db", help="Manage the metadata database schema")
    db_sub = db_parser.add_subparsers(dest="db_command", help="Migration commands")
    for name, help_text in (
        ("upgrade", "Upgrade to a revision (default: head)"),
        ("downgrade", "Downgrade to a revision (default: previous)"),
    ):
        sub = db_sub.add_parser(name, help=help_text)
        sub.add_argument("revision", nargs="?", help="Target revision")

    # Admin console
    admin_parser = subparsers.add_parser("admin", help="Run the admin console")
    admin_parser.add_argument("--host", help="Bind host")
    admin_parser.add_argument("--port", type=int, help="Bind port")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(
        log_level=args.log_level or settings.log_level,
        json_format=args.json_logs or settings.log_json,
    )

    if args.command == "admin":
        return run_admin(args)

    if args.command == "db" and args.db_command:
        return run_db(args)

    if args.command != "export" or not args.export_command:
        parser.print_help()
        return 2

    init_data = collect_init_data(args) if args.export_command == "init" else None

    set_run_id()
    try:
        return asyncio.run(_run_export(args, init_data))
    except SchemaportError as e:
        logger.error(f"{args.export_command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        clear_run_id()


if __name__ == "__main__":
    sys.exit(main())
