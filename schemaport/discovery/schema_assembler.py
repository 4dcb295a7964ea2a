"""
Schema assembly for sampled collections.

Turns a collection's flattened sample document into a Schema with one
Mapping per leaf field, and derives SQL-safe table and column names.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from schemaport.config.settings import get_settings
from schemaport.discovery.schema_analyzer import FlatValue, flatten_document
from schemaport.export.errors import SourceStoreError
from schemaport.export.model import Mapping, Schema
from schemaport.stores.adapter import SourceStore

logger = logging.getLogger(__name__)

_UNDERSCORES = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """
    Convert a camelCase or PascalCase name to snake_case.

    Names made only of lowercase letters, digits and underscores are
    returned unchanged.

    Args:
        name: Original name

    Returns:
        snake_case name
    """
    if all(c.islower() or c.isdigit() or c == "_" for c in name):
        return name

    chars = []
    for i, c in enumerate(name):
        if i > 0 and c.isupper():
            chars.append("_")
        chars.append(c.lower())

    return _UNDERSCORES.sub("_", "".join(chars))


def destination_field_name(source_field_name: str, collection: str) -> str:
    """
    Derive the destination column name for a flattened field path.

    The collection prefix is stripped, remaining dots become underscores,
    and the result is snake_cased. A path without the expected prefix
    uses everything after its first dot.

    Example:
        destination_field_name("users.address.zipCode", "users") -> "address_zip_code"
    """
    prefix = f"{collection}."
    if source_field_name.startswith(prefix):
        field_path = source_field_name[len(prefix):]
    else:
        _, sep, rest = source_field_name.partition(".")
        field_path = rest if sep else source_field_name

    return to_snake_case(field_path.replace(".", "_"))


def filter_collections(
    collections: Sequence[str],
    include: Sequence[str],
    exclude: Sequence[str],
) -> List[str]:
    """
    Apply an export's include/exclude filters to the source collections.

    A non-empty include list wins and exclude is ignored. Source order is
    kept.

    Raises:
        SourceStoreError: If an included collection does not exist, or
            nothing is left to export
    """
    if include:
        missing = [name for name in include if name not in collections]
        if missing:
            raise SourceStoreError(
                f"included collection `{missing[0]}` not in collection list")
        selected = [name for name in collections if name in include]
    else:
        selected = [name for name in collections if name not in exclude]

    if not selected:
        raise SourceStoreError("no collections to export")

    return selected


class SchemaAssembler:
    """
    Builds default Schemas for source collections.

    Each collection is sampled once and its first document defines the
    columns.
    """

    def __init__(
        self,
        source: SourceStore,
        namespace: str,
        schema_version: Optional[str] = None,
        mapping_version: Optional[str] = None,
    ):
        """
        Initialize assembler.

        Args:
            source: Source store to sample from
            namespace: Export namespace copied onto each Schema
            schema_version: Version label for generated schemas
            mapping_version: Version label for generated mappings
        """
        settings = get_settings()

        self.source = source
        self.namespace = namespace
        self.schema_version = schema_version or settings.default_schema_version
        self.mapping_version = mapping_version or settings.default_mapping_version

    async def flatten_collection(self, collection: str) -> Dict[str, FlatValue]:
        """Sample a collection and flatten its first document."""
        doc = await self.source.sample_one(collection)
        if doc is None:
            logger.info(f"Collection {collection} is empty, no fields mapped")
            return {}
        return flatten_document(doc, collection)

    def build_schema(self, collection: str, flat_map: Dict[str, FlatValue]) -> Schema:
        """Assemble a Schema from a collection's flattened fields."""
        mappings = [
            Mapping(
                source_field_name=path,
                destination_field_name=destination_field_name(path, collection),
                source_field_type=value.source_type_label,
                destination_field_type=value.sql_type,
                version=self.mapping_version,
            )
            for path, value in flat_map.items()
        ]

        return Schema(
            namespace=self.namespace,
            collection=collection,
            sql_table=to_snake_case(collection),
            version=self.schema_version,
            mappings=mappings,
        )

    async def assemble(self, collection: str) -> Schema:
        flat_map = await self.flatten_collection(collection)
        schema = self.build_schema(collection, flat_map)
        logger.debug(
            f"Generated schema for collection {collection}: "
            f"{len(schema.mappings)} mappings"
        )
        return schema

    async def assemble_all(self, collections: Sequence[str]) -> List[Schema]:
        """Assemble Schemas one collection at a time, in the given order."""
        schemas = []
        for collection in collections:
            schemas.append(await self.assemble(collection))
        return schemas
