"""Metadata catalog: ORM models, engine and store."""
