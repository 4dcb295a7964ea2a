"""
DDL Generator for destination tables.

Builds the CREATE/DROP/TRUNCATE statements and catalog queries for a
collection's Schema. Statements are plain strings; nothing here touches
a database.
"""

import re
from typing import List

from schemaport.export.model import Mapping, Schema

_PLAIN_IDENTIFIER = re.compile(r"[a-z_][a-z0-9_$]*")

# PostgreSQL reserved words that cannot be used as bare identifiers
RESERVED_WORDS = frozenset({
    "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
    "asymmetric", "both", "case", "cast", "check", "collate", "column",
    "constraint", "create", "current_catalog", "current_date",
    "current_role", "current_time", "current_timestamp", "current_user",
    "default", "deferrable", "desc", "distinct", "do", "else", "end",
    "except", "false", "fetch", "for", "foreign", "from", "grant", "group",
    "having", "in", "initially", "intersect", "into", "lateral", "leading",
    "limit", "localtime", "localtimestamp", "not", "null", "offset", "on",
    "only", "or", "order", "placing", "primary", "references", "returning",
    "select", "session_user", "some", "symmetric", "table", "then", "to",
    "trailing", "true", "union", "unique", "user", "using", "variadic",
    "when", "where", "window", "with",
})


class DDLGenerator:
    """
    Generates SQL DDL (Data Definition Language) statements for a Schema.

    Tables live at {namespace}.{sql_table}. Every table gets a surrogate
    SERIAL primary key followed by one column per Mapping, in Mapping
    order, using the Mapping's destination name and type verbatim.
    """

    def quote_identifier(self, name: str) -> str:
        """
        Quote an identifier only when it is not a plain lowercase name.

        Args:
            name: Table, schema or column name

        Returns:
            The name unchanged, or double-quoted with embedded quotes doubled
        """
        if _PLAIN_IDENTIFIER.fullmatch(name) and name not in RESERVED_WORDS:
            return name
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def quote_literal(self, value: str) -> str:
        """Quote a string literal for SQL."""
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    def full_table_name(self, schema: Schema) -> str:
        return f"{self.quote_identifier(schema.namespace)}.{self.quote_identifier(schema.sql_table)}"

    def exists_check(self, schema: Schema) -> str:
        """
        Generate a catalog query returning a row if the table exists.

        Args:
            schema: Schema whose table to look up

        Returns:
            SELECT statement against information_schema.tables
        """
        return (
            "SELECT table_name FROM information_schema.tables\n"
            f"WHERE table_schema = {self.quote_literal(schema.namespace)} "
            f"AND table_name = {self.quote_literal(schema.sql_table)}"
        )

    def drop_if_exists(self, schema: Schema) -> str:
        return f"DROP TABLE IF EXISTS {self.full_table_name(schema)}"

    def truncate(self, schema: Schema) -> str:
        return f"TRUNCATE TABLE {self.full_table_name(schema)}"

    def create_if_not_exists(self, schema: Schema) -> str:
        """
        Generate CREATE TABLE IF NOT EXISTS DDL statement.

        Args:
            schema: Schema with ordered mappings

        Returns:
            Complete CREATE TABLE SQL statement
        """
        columns: List[str] = ["id SERIAL PRIMARY KEY"]
        column_definitions = ",".join(
            self._column_definition(m) for m in schema.mappings
        )
        if column_definitions:
            columns.append(column_definitions)

        lines = [
            f"CREATE TABLE IF NOT EXISTS {self.full_table_name(schema)} (",
            "    " + ",\n    ".join(columns),
            ")",
        ]
        return "\n".join(lines)

    def create_schema_if_not_exists(self, namespace: str) -> str:
        """Generate DDL creating the namespace's destination schema."""
        return f"CREATE SCHEMA IF NOT EXISTS {self.quote_identifier(namespace)}"

    def table_definition(self, schema: Schema) -> str:
        """
        Generate a catalog query describing the table's current columns.

        Used to compare a live table against its Schema.
        """
        return (
            "SELECT table_schema, table_name, column_name, ordinal_position,\n"
            "       is_nullable, data_type, character_maximum_length,\n"
            "       numeric_precision, numeric_scale, datetime_precision\n"
            "FROM information_schema.columns\n"
            f"WHERE table_schema = {self.quote_literal(schema.namespace)} "
            f"AND table_name = {self.quote_literal(schema.sql_table)}\n"
            "ORDER BY ordinal_position"
        )

    def _column_definition(self, mapping: Mapping) -> str:
        return f"{self.quote_identifier(mapping.destination_field_name)} {mapping.destination_field_type}"
