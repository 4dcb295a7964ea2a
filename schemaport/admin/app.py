# Admin console application

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from pydantic import BaseModel

from schemaport import __version__
from schemaport.catalog.database import (
    check_database_connection,
    dispose_engine,
    get_session_factory,
    init_db,
)
from schemaport.catalog.store import MetadataStore, SqlMetadataStore
from schemaport.export.errors import ExportNotFoundError
from schemaport.export.model import Export
from schemaport.export.service import ExportService

logger = logging.getLogger(__name__)


class ConnectionResponse(BaseModel):
    name: str
    connection_string: str


class UserResponse(BaseModel):
    full_name: str
    email: str


class MappingResponse(BaseModel):
    source_field_name: str
    destination_field_name: str
    source_field_type: str
    destination_field_type: str
    version: str


class SchemaResponse(BaseModel):
    collection: str
    sql_table: str
    version: str
    mappings: List[MappingResponse]


class ExportSummary(BaseModel):
    namespace: str
    type: str
    include_filters: List[str]
    exclude_filters: List[str]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ExportDetail(ExportSummary):
    source_connection: ConnectionResponse
    destination_connection: ConnectionResponse
    creator: UserResponse
    updator: UserResponse
    schemas: List[SchemaResponse]


class DDLResponse(BaseModel):
    namespace: str
    statements: List[str]


def _summary(export: Export) -> ExportSummary:
    return ExportSummary(
        namespace=export.namespace,
        type=export.export_type,
        include_filters=export.include_filters,
        exclude_filters=export.exclude_filters,
        created_at=export.created_at.isoformat() if export.created_at else None,
        updated_at=export.updated_at.isoformat() if export.updated_at else None,
    )


def _detail(export: Export) -> ExportDetail:
    return ExportDetail(
        **_summary(export).model_dump(),
        source_connection=ConnectionResponse(**export.source_connection.to_json()),
        destination_connection=ConnectionResponse(**export.destination_connection.to_json()),
        creator=UserResponse(**export.creator.to_json()),
        updator=UserResponse(**export.updator.to_json()),
        schemas=[
            SchemaResponse(
                collection=s.collection,
                sql_table=s.sql_table,
                version=s.version,
                mappings=[MappingResponse(**m.to_json()) for m in s.mappings],
            )
            for s in export.schemas
        ],
    )


def get_metadata_store() -> MetadataStore:
    """Metadata store dependency. Overridden in tests."""
    return SqlMetadataStore(get_session_factory())


def get_export_service(store: MetadataStore = Depends(get_metadata_store)) -> ExportService:
    return ExportService(store)


router = APIRouter()


@router.get("/exports", response_model=List[ExportSummary])
async def list_exports(service: ExportService = Depends(get_export_service)):
    """List stored export definitions."""
    return [_summary(e) for e in await service.list_exports()]


@router.get("/exports/{namespace}", response_model=ExportDetail)
async def get_export(namespace: str, service: ExportService = Depends(get_export_service)):
    """Get one export with its schemas and mappings."""
    try:
        export = await service.show_export(namespace)
    except ExportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _detail(export)


@router.get("/exports/{namespace}/ddl", response_model=DDLResponse)
async def get_export_ddl(namespace: str, service: ExportService = Depends(get_export_service)):
    """Destination DDL for an export's schemas."""
    try:
        statements = await service.generate_ddl(namespace)
    except ExportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return DDLResponse(namespace=namespace, statements=statements)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create metadata tables on startup and release the engine on shutdown."""
    logger.info("Initializing metadata database...")
    await init_db()

    yield

    await dispose_engine()
    logger.info("Metadata engine disposed")


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="schemaport admin",
        description="Read-only console for export definitions",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
    )
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy"}

    @app.get("/ready")
    async def readiness():
        """Readiness check endpoint"""
        db_healthy = await check_database_connection()

        return {
            "status": "ready" if db_healthy else "not_ready",
            "database": "connected" if db_healthy else "disconnected",
        }

    return app


app = create_app()
