"""Tests for the SQLAlchemy document store and the Audit Wall repository.

Both run against file-backed SQLite databases (aiosqlite) under tmp_path.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from visita_workflow.adapters import audit_wall
from visita_workflow.adapters.database import create_engine, create_session_factory, create_tables
from visita_workflow.adapters.document_store import SqlDocumentStore
from visita_workflow.core.interfaces import QueryFilter
from visita_workflow.core.models import DocumentRow
from visita_workflow.core.records import Actor, AuditLogEntry, FieldChange
from visita_workflow.core.services import AuditService, ChurchRecordWorkflow
from visita_workflow.errors import NotFoundError
from tests.conftest import make_form


@asynccontextmanager
async def sql_store(tmp_path: Path) -> AsyncIterator[SqlDocumentStore]:
    """Yield a SqlDocumentStore on a fresh SQLite file, disposing the engine afterwards.

    Args:
        tmp_path: Directory for the database file.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'documents.db'}")
    try:
        await create_tables(engine, [DocumentRow.__table__])
        yield SqlDocumentStore(create_session_factory(engine))
    finally:
        await engine.dispose()


class TestSqlDocumentStore:
    """Tests for SqlDocumentStore."""

    @pytest.mark.asyncio()
    async def test_set_get_and_overwrite(self, tmp_path: Path) -> None:
        async with sql_store(tmp_path) as store:
            await store.set("churches", "a", {"id": "ignored", "name": "St. Anne"})
            await store.set("churches", "a", {"name": "Sta. Ana"})

            assert await store.get("churches", "a") == {"id": "a", "name": "Sta. Ana"}
            assert await store.get("churches", "missing") is None
            assert await store.get("parishes", "a") is None

    @pytest.mark.asyncio()
    async def test_query_filters_by_type(self, tmp_path: Path) -> None:
        async with sql_store(tmp_path) as store:
            await store.set("churches", "a", {"status": "approved", "founding_year": 1768, "has_pending_changes": True})
            await store.set("churches", "b", {"status": "approved", "founding_year": 1950, "has_pending_changes": False})
            await store.set("churches", "c", {"status": "pending", "founding_year": None, "has_pending_changes": False})

            by_status = await store.query("churches", [QueryFilter("status", "approved")], order_by="founding_year")
            by_flag = await store.query("churches", [QueryFilter("has_pending_changes", True)])
            by_year = await store.query("churches", [QueryFilter("founding_year", 1950)])
            by_null = await store.query("churches", [QueryFilter("founding_year", None)])

            assert [document["id"] for document in by_status] == ["a", "b"]
            assert [document["id"] for document in by_flag] == ["a"]
            assert [document["id"] for document in by_year] == ["b"]
            assert [document["id"] for document in by_null] == ["c"]

    @pytest.mark.asyncio()
    async def test_dotted_filter(self, tmp_path: Path) -> None:
        async with sql_store(tmp_path) as store:
            await store.set("churches", "a", {"pending_changes": {"forwarded_to_museum": True}})
            await store.set("churches", "b", {"pending_changes": {"forwarded_to_museum": False}})
            await store.set("churches", "c", {"pending_changes": None})

            result = await store.query("churches", [QueryFilter("pending_changes.forwarded_to_museum", False)])

            assert [document["id"] for document in result] == ["b"]

    @pytest.mark.asyncio()
    async def test_update_and_transaction(self, tmp_path: Path) -> None:
        async with sql_store(tmp_path) as store:
            doc_id = await store.add("churches", {"status": "approved", "pending_changes": {"data": {}}})

            await store.update("churches", doc_id, {"pending_changes.forwarded_by": "chancery-1"})
            written = await store.transaction(
                "churches",
                doc_id,
                lambda document: {**document, "status": "draft"},
            )

            assert written == {
                "id": doc_id,
                "status": "draft",
                "pending_changes": {"data": {}, "forwarded_by": "chancery-1"},
            }
            assert await store.get("churches", doc_id) == written

    @pytest.mark.asyncio()
    async def test_update_missing_document(self, tmp_path: Path) -> None:
        async with sql_store(tmp_path) as store:
            with pytest.raises(NotFoundError):
                await store.update("churches", "missing", {"status": "draft"})

    @pytest.mark.asyncio()
    async def test_workflow_round_trip(self, tmp_path: Path, parish_secretary: Actor, chancery_officer: Actor) -> None:
        """The staged-update workflow runs unchanged on the SQL store."""
        async with sql_store(tmp_path) as store:
            workflow = ChurchRecordWorkflow(store=store, audit_service=AuditService(_NullSink()))
            church_id = await workflow.create(make_form(), "tagbilaran", parish_secretary)
            await workflow.transition_status(church_id, "approved", chancery_officer)

            result = await workflow.update_with_staging(church_id, make_form(name="Sta. Ana"), parish_secretary)
            queue = await workflow.list_pending_updates("tagbilaran")

            assert result.staged_for_review == ["name"]
            assert [church.id for church in queue] == [church_id]


class _NullSink:
    """Audit sink that discards entries."""

    async def append(self, entry: AuditLogEntry) -> str:
        return "discarded"

    async def query(self, **kwargs: object) -> list[AuditLogEntry]:
        return []


class TestAuditWall:
    """Tests for init_audit_db() and AuditLogRepository."""

    @pytest.mark.asyncio()
    async def test_session_factory_requires_init(self) -> None:
        await audit_wall.close_audit_db()

        with pytest.raises(RuntimeError, match="has not been initialized"):
            audit_wall.get_audit_session_factory()

    @pytest.mark.asyncio()
    async def test_append_and_query(self, tmp_path: Path, chancery_officer: Actor) -> None:
        session_factory = await audit_wall.init_audit_db(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
        try:
            assert audit_wall.get_audit_session_factory() is session_factory
            repository = audit_wall.AuditLogRepository(session_factory)
            start = datetime(2026, 3, 1, tzinfo=UTC)

            first_id = await repository.append(
                AuditLogEntry(
                    actor=chancery_officer,
                    action="church.approve",
                    resource_type="church",
                    resource_id="church-1",
                    resource_name="St. Anne",
                    changes=[FieldChange(field="status", old_value="pending", new_value="approved")],
                    diocese="tagbilaran",
                    metadata={"note": None, "auto_forwarded": False},
                    timestamp=start,
                )
            )
            await repository.append(
                AuditLogEntry(
                    actor=chancery_officer,
                    action="church.unpublish",
                    resource_type="church",
                    resource_id="church-1",
                    diocese="tagbilaran",
                    metadata={"reason": "duplicate entry"},
                    timestamp=start + timedelta(hours=1),
                )
            )

            history = await repository.query(resource_type="church", resource_id="church-1")
            approvals = await repository.query(actor_uid="chancery-1", action="church.approve")

            assert [entry.action for entry in history] == ["church.unpublish", "church.approve"]
            assert history[0].metadata == {"reason": "duplicate entry"}
            (approval,) = approvals
            assert approval.id == first_id
            assert approval.actor == chancery_officer
            assert approval.changes == [FieldChange(field="status", old_value="pending", new_value="approved")]
            assert await repository.query(diocese="talibon") == []
        finally:
            await audit_wall.close_audit_db()
