"""VISITA workflow service entry point.

Initializes the FastAPI application with:
- Structured logging
- The church document store (in-memory, or the SQLAlchemy primary database)
- The audit sink (in-memory, or the separate Audit Wall database)
- A shared AuditService, drained on shutdown
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from visita_workflow.adapters.audit_wall import AuditLogRepository, close_audit_db, init_audit_db
from visita_workflow.adapters.database import create_engine, create_session_factory, create_tables
from visita_workflow.adapters.document_store import SqlDocumentStore
from visita_workflow.adapters.memory_store import InMemoryAuditLog, InMemoryDocumentStore
from visita_workflow.api.handlers import register_exception_handlers
from visita_workflow.api.router import router
from visita_workflow.core.models import DocumentRow
from visita_workflow.core.services import AuditService
from visita_workflow.observability import configure_logging, get_logger
from visita_workflow.settings import Settings

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use. Read from the environment when omitted.

    Returns:
        The configured application.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown lifecycle.

        Args:
            app: The FastAPI application instance.

        Yields:
            None
        """
        configure_logging(settings.log_level, json_output=settings.log_json)

        documents_engine = None
        if settings.store_backend == "sql":
            # Startup: primary database
            logger.info("Initializing documents database", service=settings.service_name)
            documents_engine = create_engine(settings.database_url, pool_size=settings.database_pool_size)
            await create_tables(documents_engine, [DocumentRow.__table__])
            document_store = SqlDocumentStore(create_session_factory(documents_engine))

            # Startup: Audit Wall (separate database)
            logger.info(
                "Initializing Audit Wall database",
                service=settings.service_name,
                pool_size=settings.audit_db_pool_size,
            )
            audit_session_factory = await init_audit_db(
                audit_db_url=settings.audit_db_url,
                pool_size=settings.audit_db_pool_size,
            )
            audit_sink = AuditLogRepository(audit_session_factory)
        else:
            logger.info("Using in-memory stores", service=settings.service_name)
            document_store = InMemoryDocumentStore()
            audit_sink = InMemoryAuditLog()

        audit_service = AuditService(audit_sink, dispatch=settings.audit_dispatch)

        # Store shared clients on app state for dependency injection
        app.state.settings = settings
        app.state.document_store = document_store
        app.state.audit_service = audit_service

        logger.info(
            "Workflow service startup complete",
            store_backend=settings.store_backend,
            audit_dispatch=settings.audit_dispatch,
        )

        yield

        # Shutdown
        logger.info("Shutting down workflow service")
        await audit_service.drain()
        if documents_engine is not None:
            await close_audit_db()
            await documents_engine.dispose()
        logger.info("Workflow service shutdown complete")

    app = FastAPI(title=settings.service_name, version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    return app


app: FastAPI = create_app()
