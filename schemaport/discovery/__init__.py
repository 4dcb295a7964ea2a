"""
Discovery module for sampled source documents.

Provides type projection, document flattening and DDL generation. Schema
assembly lives in schemaport.discovery.schema_assembler.
"""

from schemaport.discovery.schema_analyzer import (
    FlatValue,
    SourceType,
    detect_source_type,
    flatten_document,
    source_type_label,
    sql_type,
)
from schemaport.discovery.ddl_generator import DDLGenerator

__all__ = [
    "FlatValue",
    "SourceType",
    "detect_source_type",
    "flatten_document",
    "source_type_label",
    "sql_type",
    "DDLGenerator",
]
