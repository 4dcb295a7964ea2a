"""Initial metadata tables for export definitions

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user, connection, export, schema and mapping tables."""

    # Create user table
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('full_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('idx_user_email', 'user', ['email'])

    # Create connection table
    op.create_table(
        'connection',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('connection_string', sa.Text(), nullable=False),
        sqlite_autoincrement=True,
    )

    # Create export table
    op.create_table(
        'export',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('namespace', sa.String(255), nullable=False),
        sa.Column('type', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('source_connection_id', sa.Integer(),
                  sa.ForeignKey('connection.id'), nullable=False),
        sa.Column('destination_connection_id', sa.Integer(),
                  sa.ForeignKey('connection.id'), nullable=False),
        sa.Column('exclude_filters', sa.Text(), nullable=True),
        sa.Column('include_filters', sa.Text(), nullable=True),
        sa.Column('creator_id', sa.Integer(),
                  sa.ForeignKey('user.id'), nullable=False),
        sa.Column('updator_id', sa.Integer(),
                  sa.ForeignKey('user.id'), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('idx_export_namespace', 'export', ['namespace'])

    # Create schema table; rows survive deletion of their export
    op.create_table(
        'schema',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('export_id', sa.Integer(),
                  sa.ForeignKey('export.id', ondelete='SET NULL'), nullable=True),
        sa.Column('namespace', sa.String(255), nullable=False),
        sa.Column('collection', sa.String(255), nullable=False),
        sa.Column('sql_table', sa.String(255), nullable=False),
        sa.Column('version', sa.String(64), nullable=False),
        sa.Column('indexes', sa.Text(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('idx_schema_export_id', 'schema', ['export_id'])
    op.create_index('idx_schema_ns_collection', 'schema', ['namespace', 'collection'])

    # Create mapping table
    op.create_table(
        'mapping',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('schema_id', sa.Integer(),
                  sa.ForeignKey('schema.id'), nullable=False),
        sa.Column('source_field_name', sa.Text(), nullable=False),
        sa.Column('destination_field_name', sa.Text(), nullable=False),
        sa.Column('source_field_type', sa.String(64), nullable=False),
        sa.Column('destination_field_type', sa.String(64), nullable=False),
        sa.Column('version', sa.String(64), nullable=False, server_default='1.0'),
        sqlite_autoincrement=True,
    )
    op.create_index('idx_mapping_schema_id', 'mapping', ['schema_id'])


def downgrade() -> None:
    """Drop all metadata tables."""
    op.drop_index('idx_mapping_schema_id', table_name='mapping')
    op.drop_table('mapping')
    op.drop_index('idx_schema_ns_collection', table_name='schema')
    op.drop_index('idx_schema_export_id', table_name='schema')
    op.drop_table('schema')
    op.drop_index('idx_export_namespace', table_name='export')
    op.drop_table('export')
    op.drop_table('connection')
    op.drop_index('idx_user_email', table_name='user')
    op.drop_table('user')
