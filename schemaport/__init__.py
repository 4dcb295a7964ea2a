"""Schema discovery and export definitions for document-to-relational exports."""

__version__ = "0.1.0"
