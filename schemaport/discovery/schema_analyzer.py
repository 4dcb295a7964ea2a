"""
Document Type Projector and Flattener.

Utilities for classifying sampled source-document values, projecting
them onto destination SQL column types, and flattening nested documents
into dotted field paths.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from bson import Binary, Code, DBRef, Decimal128, Int64, MaxKey, MinKey, ObjectId, Regex, Timestamp
from bson.datetime_ms import DatetimeMS

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class SourceType(str, Enum):
    """Closed set of source document value types."""
    DOUBLE = "double"
    STRING = "string"
    EMBEDDED_DOCUMENT = "embedded_document"
    ARRAY = "array"
    BINARY = "binary"
    UNDEFINED = "undefined"
    OBJECT_ID = "object_id"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    NULL = "null"
    REGULAR_EXPRESSION = "regular_expression"
    DB_POINTER = "db_pointer"
    JAVASCRIPT_CODE = "javascript_code"
    SYMBOL = "symbol"
    JAVASCRIPT_CODE_WITH_SCOPE = "javascript_code_with_scope"
    INT32 = "int32"
    TIMESTAMP = "timestamp"
    INT64 = "int64"
    DECIMAL128 = "decimal128"
    MAX_KEY = "max_key"
    MIN_KEY = "min_key"


# Labels stored in mapping.source_field_type
_SOURCE_TYPE_LABELS: Dict[SourceType, str] = {
    SourceType.EMBEDDED_DOCUMENT: "embed",
    SourceType.DOUBLE: "double",
    SourceType.STRING: "string",
    SourceType.ARRAY: "array",
    SourceType.BINARY: "binary",
    SourceType.UNDEFINED: "undefined",
    SourceType.OBJECT_ID: "object_id",
    SourceType.BOOLEAN: "boolean",
    SourceType.DATETIME: "datetime",
    SourceType.NULL: "null",
    SourceType.REGULAR_EXPRESSION: "regular_expression",
    SourceType.DB_POINTER: "db_pointer",
    SourceType.JAVASCRIPT_CODE: "javascript_code",
    SourceType.SYMBOL: "symbol",
    SourceType.JAVASCRIPT_CODE_WITH_SCOPE: "javascript_code_with_scope",
    SourceType.INT32: "int32",
    SourceType.TIMESTAMP: "timestamp",
    SourceType.INT64: "int64",
    SourceType.DECIMAL128: "decimal128",
    SourceType.MAX_KEY: "max_key",
    SourceType.MIN_KEY: "min_key",
}

DEFAULT_SQL_TYPE = "text"

_SQL_TYPES: Dict[SourceType, str] = {
    SourceType.STRING: "text",
    SourceType.OBJECT_ID: "text",
    SourceType.NULL: "text",
    SourceType.DOUBLE: "numeric",
    SourceType.DECIMAL128: "numeric",
    SourceType.INT32: "integer",
    SourceType.INT64: "bigint",
    SourceType.BOOLEAN: "boolean",
    SourceType.TIMESTAMP: "timestamp with time zone",
    SourceType.DATETIME: "timestamp with time zone",
}


def source_type_label(source_type: SourceType) -> str:
    """Return the stored label for a source type."""
    return _SOURCE_TYPE_LABELS[source_type]


def sql_type(source_type: SourceType) -> str:
    """
    Map a source type to a destination SQL column type.

    Arrays, binary data, embedded documents and the low-level tags all
    fall back to text.

    Args:
        source_type: The source type to map

    Returns:
        SQL column type label
    """
    return _SQL_TYPES.get(source_type, DEFAULT_SQL_TYPE)


def detect_source_type(value: Any) -> SourceType:
    """
    Detect the source type of a decoded document value.

    Args:
        value: The value to check

    Returns:
        SourceType enum value
    """
    # bool and Int64 are int subclasses; Code is a str subclass
    if value is None:
        return SourceType.NULL
    elif isinstance(value, bool):
        return SourceType.BOOLEAN
    elif isinstance(value, Int64):
        return SourceType.INT64
    elif isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            return SourceType.INT32
        return SourceType.INT64
    elif isinstance(value, float):
        return SourceType.DOUBLE
    elif isinstance(value, (Decimal128, Decimal)):
        return SourceType.DECIMAL128
    elif isinstance(value, Code):
        if value.scope is not None:
            return SourceType.JAVASCRIPT_CODE_WITH_SCOPE
        return SourceType.JAVASCRIPT_CODE
    elif isinstance(value, str):
        return SourceType.STRING
    elif isinstance(value, ObjectId):
        return SourceType.OBJECT_ID
    elif isinstance(value, (datetime, DatetimeMS)):
        return SourceType.DATETIME
    elif isinstance(value, Timestamp):
        return SourceType.TIMESTAMP
    elif isinstance(value, (Binary, bytes, bytearray)):
        return SourceType.BINARY
    elif isinstance(value, (Regex, re.Pattern)):
        return SourceType.REGULAR_EXPRESSION
    elif isinstance(value, DBRef):
        return SourceType.DB_POINTER
    elif isinstance(value, MinKey):
        return SourceType.MIN_KEY
    elif isinstance(value, MaxKey):
        return SourceType.MAX_KEY
    elif isinstance(value, Mapping):
        return SourceType.EMBEDDED_DOCUMENT
    elif isinstance(value, (list, tuple)):
        return SourceType.ARRAY
    else:
        return SourceType.STRING  # Fallback


@dataclass(frozen=True)
class FlatValue:
    """A single leaf value from a flattened document."""
    value: Any
    source_type: SourceType

    @property
    def source_type_label(self) -> str:
        return source_type_label(self.source_type)

    @property
    def sql_type(self) -> str:
        return sql_type(self.source_type)


def flatten_document(
    doc: Mapping[str, Any],
    prefix: str,
    result: Optional[Dict[str, FlatValue]] = None,
) -> Dict[str, FlatValue]:
    """
    Flatten a nested document into dotted paths.

    Nested documents are walked recursively and produce no entry of their
    own. Every other value, arrays included, becomes a leaf. The returned
    dict keeps the document's field order.

    Example:
        flatten_document({"a": 1, "b": {"c": "x"}}, "users")
        -> {"users.a": FlatValue(1, INT32), "users.b.c": FlatValue("x", STRING)}

    Args:
        doc: The document to flatten
        prefix: Path prefix, the collection name at the top level
        result: Dict to accumulate into (used by the recursion)

    Returns:
        Dictionary mapping dotted paths to FlatValue leaves
    """
    if result is None:
        result = {}

    if not doc:
        return result

    for key, value in doc.items():
        path = f"{prefix}.{key}"
        value_type = detect_source_type(value)

        if value_type == SourceType.EMBEDDED_DOCUMENT:
            flatten_document(value, path, result)
        else:
            result[path] = FlatValue(value=value, source_type=value_type)

    return result
