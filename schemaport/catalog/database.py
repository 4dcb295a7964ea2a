"""
Metadata database connection and session management.

Provides the async engine, session factory, and helper functions for
metadata store operations.
"""

from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from schemaport.config.settings import get_settings
from schemaport.catalog.models import Base

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE clauses unless foreign keys are switched on
    module = type(dbapi_connection).__module__
    if "sqlite" in module:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for a metadata database URL.

    SQLite URLs get no pool sizing; server databases get a pre-pinged pool.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo, future=True)

    settings = get_settings()
    return create_async_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo,
        future=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide metadata engine."""
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for_url(settings.database_url, echo=settings.debug)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory bound to the metadata engine."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """
    Initialize the metadata database by creating all tables.

    Migrations under migrations/ produce the same schema for server
    databases.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def check_database_connection() -> bool:
    """
    Check if the metadata database connection is healthy.

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
