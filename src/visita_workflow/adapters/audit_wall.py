"""Audit Wall — separate database connection for the immutable audit log.

This module is the ONLY place that connects to VISITA_AUDIT_DB_URL. Church
documents use the primary engine owned by document_store.py.

In production the audit database should be a separate instance whose
credentials only grant INSERT and SELECT on visita_audit_logs. No UPDATE or
DELETE operations exist at the application level.

Key exports:
- init_audit_db(...)          — Call at startup to initialize the audit engine
- close_audit_db()            — Call at shutdown to dispose the engine
- get_audit_session_factory() — Session factory for AuditLogRepository
- AuditLogRepository          — Append-only write + read operations
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from visita_workflow.adapters.database import create_engine, create_session_factory, create_tables
from visita_workflow.core.models import AuditLogRow
from visita_workflow.core.records import Actor, AuditLogEntry, FieldChange
from visita_workflow.observability import get_logger

logger = get_logger(__name__)

# Module-level engine and session factory, set by init_audit_db()
_audit_engine: AsyncEngine | None = None
_audit_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_audit_db(
    audit_db_url: str,
    pool_size: int = 5,
    max_overflow: int = 2,
    pool_timeout: int = 30,
) -> async_sessionmaker[AsyncSession]:
    """Initialize the Audit Wall engine, session factory and table.

    Must be called once at application startup (in the lifespan handler)
    before any audit writes can occur.

    Args:
        audit_db_url: Async connection URL for the separate audit database.
        pool_size: Connection pool size.
        max_overflow: Max overflow connections above pool_size.
        pool_timeout: Seconds to wait for a connection before raising.

    Returns:
        The audit session factory.
    """
    global _audit_engine, _audit_session_factory  # noqa: PLW0603

    logger.info("Initializing Audit Wall engine", pool_size=pool_size, max_overflow=max_overflow)

    # Echo stays disabled inside create_engine; audit queries must not log values
    _audit_engine = create_engine(
        audit_db_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
    )
    await create_tables(_audit_engine, [AuditLogRow.__table__])
    _audit_session_factory = create_session_factory(_audit_engine)

    logger.info("Audit Wall engine initialized")
    return _audit_session_factory


async def close_audit_db() -> None:
    """Dispose the Audit Wall engine.

    After this call no further audit writes can occur until init_audit_db()
    is called again.
    """
    global _audit_engine, _audit_session_factory  # noqa: PLW0603

    if _audit_engine is not None:
        logger.info("Disposing Audit Wall engine")
        await _audit_engine.dispose()
        _audit_engine = None
        _audit_session_factory = None


def get_audit_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the Audit Wall session factory.

    Raises:
        RuntimeError: If init_audit_db() has not been called yet.
    """
    if _audit_session_factory is None:
        raise RuntimeError(
            "Audit Wall database has not been initialized. "
            "Call init_audit_db() in the application lifespan handler."
        )
    return _audit_session_factory


def _to_entry(row: AuditLogRow) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        actor=Actor.model_validate(row.actor),
        action=row.action,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        resource_name=row.resource_name,
        changes=[FieldChange.model_validate(change) for change in row.changes]
        if row.changes is not None
        else None,
        diocese=row.diocese,
        parish_id=row.parish_id,
        metadata=row.metadata_,
        timestamp=row.timestamp,
        session_id=row.session_id,
    )


class AuditLogRepository:
    """Append-only IAuditSink on the Audit Wall database.

    IMPORTANT: This repository connects to the SEPARATE audit database, not
    the primary one. It has no update() or delete() methods because the
    audit log is immutable.

    Args:
        session_factory: Factory for audit DB sessions from init_audit_db().
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize AuditLogRepository with an audit session factory.

        Args:
            session_factory: An async_sessionmaker bound to the Audit Wall engine.
        """
        self._session_factory = session_factory

    async def append(self, entry: AuditLogEntry) -> str:
        """Append an immutable audit entry to the Audit Wall.

        This is the ONLY write operation on the audit log. The entry is
        permanent once committed.

        Args:
            entry: The entry to persist. Its id is generated when absent.

        Returns:
            The ID of the persisted entry.
        """
        payload = entry.model_dump(mode="json")
        row = AuditLogRow(
            actor=payload["actor"],
            actor_uid=entry.actor.uid,
            action=entry.action,
            resource_type=entry.resource_type,
            resource_id=entry.resource_id,
            resource_name=entry.resource_name,
            changes=payload["changes"],
            diocese=entry.diocese,
            parish_id=entry.parish_id,
            metadata_=payload["metadata"],
            timestamp=entry.timestamp,
            session_id=entry.session_id,
        )
        if entry.id:
            row.id = entry.id

        async with self._session_factory() as session, session.begin():
            session.add(row)

        # Field values are never logged, only identifiers
        logger.info(
            "Audit log entry written",
            entry_id=row.id,
            action=entry.action,
            resource_type=entry.resource_type,
            resource_id=entry.resource_id,
            diocese=entry.diocese,
        )
        return row.id

    async def query(
        self,
        diocese: str | None = None,
        actor_uid: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        action: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Query the immutable audit log with equality filters.

        Args:
            diocese: Optional diocese filter.
            actor_uid: Optional actor uid filter.
            resource_type: Optional resource type filter.
            resource_id: Optional resource ID filter.
            action: Optional exact action filter.
            limit: Optional maximum number of entries.

        Returns:
            Matching entries ordered by timestamp descending.
        """
        stmt = select(AuditLogRow)
        if diocese is not None:
            stmt = stmt.where(AuditLogRow.diocese == diocese)
        if actor_uid is not None:
            stmt = stmt.where(AuditLogRow.actor_uid == actor_uid)
        if resource_type is not None:
            stmt = stmt.where(AuditLogRow.resource_type == resource_type)
        if resource_id is not None:
            stmt = stmt.where(AuditLogRow.resource_id == resource_id)
        if action is not None:
            stmt = stmt.where(AuditLogRow.action == action)

        stmt = stmt.order_by(AuditLogRow.timestamp.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_entry(row) for row in result.scalars().all()]
