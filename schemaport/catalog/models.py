"""
Database models for the export metadata catalog.

This module defines the SQLAlchemy ORM models for users, connections,
export definitions, per-collection schemas and field mappings.
"""

from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Index  # type: ignore
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column  # type: ignore


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models.

    Tables use SQLite AUTOINCREMENT so ids of deleted rows are never
    handed out again.
    """
    pass


class UserRecord(Base):
    """
    Creator/updator identity.

    Email is the lookup key used to reuse an existing user; it is not a
    unique constraint.
    """
    __tablename__ = "user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_user_email', 'email'),
        {"sqlite_autoincrement": True},
    )


class ConnectionRecord(Base):
    """Named connection string. A new row is written on every save."""
    __tablename__ = "connection"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    connection_string: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = {"sqlite_autoincrement": True}


class ExportRecord(Base):
    """
    Export definition.

    Include/exclude filters are stored comma-joined. At most one row per
    namespace is expected; the export builder deletes the previous row
    before inserting a new one.
    """
    __tablename__ = "export"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    source_connection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("connection.id"), nullable=False)
    destination_connection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("connection.id"), nullable=False)
    exclude_filters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    include_filters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    creator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.id"), nullable=False)
    updator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.id"), nullable=False)

    # Relationships
    source_connection: Mapped["ConnectionRecord"] = relationship(
        "ConnectionRecord", foreign_keys=[source_connection_id])
    destination_connection: Mapped["ConnectionRecord"] = relationship(
        "ConnectionRecord", foreign_keys=[destination_connection_id])
    creator: Mapped["UserRecord"] = relationship(
        "UserRecord", foreign_keys=[creator_id])
    updator: Mapped["UserRecord"] = relationship(
        "UserRecord", foreign_keys=[updator_id])
    schemas: Mapped[List["SchemaRecord"]] = relationship(
        "SchemaRecord", back_populates="export", passive_deletes=True,
        order_by="SchemaRecord.id")

    __table_args__ = (
        Index('idx_export_namespace', 'namespace'),
        {"sqlite_autoincrement": True},
    )


class SchemaRecord(Base):
    """
    One collection's column mapping.

    Rows outlive a replaced export: deleting the export row only clears
    export_id.
    """
    __tablename__ = "schema"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    export_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("export.id", ondelete="SET NULL"), nullable=True)
    namespace: Mapped[str] = mapped_column(String(255), nullable=False)
    collection: Mapped[str] = mapped_column(String(255), nullable=False)
    sql_table: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(64), nullable=False)
    indexes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    export: Mapped[Optional["ExportRecord"]] = relationship(
        "ExportRecord", back_populates="schemas")
    mappings: Mapped[List["MappingRecord"]] = relationship(
        "MappingRecord", back_populates="schema", order_by="MappingRecord.id")

    __table_args__ = (
        Index('idx_schema_export_id', 'export_id'),
        Index('idx_schema_ns_collection', 'namespace', 'collection'),
        {"sqlite_autoincrement": True},
    )


class MappingRecord(Base):
    """Field-level projection from a source path to a destination column."""
    __tablename__ = "mapping"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    schema_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("schema.id"), nullable=False)
    source_field_name: Mapped[str] = mapped_column(Text, nullable=False)
    destination_field_name: Mapped[str] = mapped_column(Text, nullable=False)
    source_field_type: Mapped[str] = mapped_column(String(64), nullable=False)
    destination_field_type: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[str] = mapped_column(String(64), nullable=False, default="1.0")

    # Relationships
    schema: Mapped["SchemaRecord"] = relationship(
        "SchemaRecord", back_populates="mappings")

    __table_args__ = (
        Index('idx_mapping_schema_id', 'schema_id'),
        {"sqlite_autoincrement": True},
    )
