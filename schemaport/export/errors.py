"""
Exceptions raised by export definition operations.

Each error carries enough attribution (field, step, collection) for the
caller to act on it.
"""

from typing import Optional


class SchemaportError(Exception):
    """Base exception for export definition operations."""
    pass


class ValidationError(SchemaportError):
    """Raised when an export is missing a required field before save."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"export validation failed: missing {field}")


class BuilderStateError(SchemaportError):
    """Raised when a builder operation is called from the wrong state."""
    pass


class SourceStoreError(SchemaportError):
    """Exception raised when listing or sampling the source store fails."""
    pass


class DestinationStoreError(SchemaportError):
    """Exception raised when the destination store is unreachable or rejects SQL."""
    pass


class PersistenceError(SchemaportError):
    """
    Raised when a metadata store step fails.

    Steps already committed before the failure are not undone by the
    builder.
    """

    def __init__(
        self,
        step: str,
        message: str,
        collection: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.step = step
        self.collection = collection
        self.field = field

        location = ""
        if collection:
            location = f" (collection={collection}"
            location += f", field={field})" if field else ")"
        super().__init__(f"{step} failed{location}: {message}")


class PathError(SchemaportError):
    """Raised when the snapshot output directory cannot be created or written."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class ExportNotFoundError(SchemaportError):
    """Raised when no export is stored for a namespace."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"export not found: {namespace}")


class ExportExistsError(SchemaportError):
    """Raised when initializing a namespace that already has an export."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"export exists: {namespace}")
