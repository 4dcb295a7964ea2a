"""
JSON snapshot files for export definitions.

Writes one {collection}.json file per schema and a {namespace}_export.json
file for the export itself into an output directory:

    mappings/
        users.json
        orders.json
        crm_export.json
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from schemaport.export.errors import PathError
from schemaport.export.model import Export, Schema

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Writes export and schema snapshots as indented JSON."""

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)

    def _ensure_dir(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PathError(str(self.output_dir), f"cannot create directory: {e}") from e

    def _write(self, path: Path, payload: Dict[str, Any]) -> Path:
        try:
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            raise PathError(str(path), f"cannot write snapshot: {e}") from e
        return path

    def schema_path(self, schema: Schema) -> Path:
        return self.output_dir / f"{schema.collection}.json"

    def export_path(self, export: Export) -> Path:
        return self.output_dir / f"{export.namespace}_export.json"

    def write_schema(self, schema: Schema) -> Path:
        self._ensure_dir()
        return self._write(self.schema_path(schema), schema.to_json())

    def write_export(self, export: Export) -> Path:
        """
        Write the export snapshot.

        The schemas entry lists the per-collection snapshot file paths
        instead of embedding the mappings.
        """
        self._ensure_dir()
        payload = export.to_json()
        payload["schemas"] = [str(self.schema_path(s)) for s in export.schemas]
        return self._write(self.export_path(export), payload)

    def write_all(self, export: Export) -> List[Path]:
        """
        Write every schema snapshot followed by the export snapshot.

        Returns:
            Paths written, export snapshot last

        Raises:
            PathError: If the directory or a file cannot be written
        """
        paths = [self.write_schema(schema) for schema in export.schemas]
        paths.append(self.write_export(export))
        logger.info(f"Wrote {len(paths)} snapshot files to {self.output_dir}")
        return paths
