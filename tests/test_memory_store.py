"""Tests for the in-memory document store and audit log adapters."""

from datetime import UTC, datetime, timedelta

import pytest

from visita_workflow.adapters.memory_store import (
    InMemoryAuditLog,
    InMemoryDocumentStore,
    field_value,
    matches,
    order_documents,
)
from visita_workflow.core.interfaces import QueryFilter
from visita_workflow.core.records import Actor, AuditLogEntry
from visita_workflow.errors import NotFoundError


class TestDocumentHelpers:
    """Tests for field_value(), matches() and order_documents()."""

    def test_dotted_lookup(self) -> None:
        document = {"pending_changes": {"forwarded_to_museum": True}}
        assert field_value(document, "pending_changes.forwarded_to_museum") is True

    def test_missing_field_matches_none(self) -> None:
        assert matches({"pending_changes": None}, [QueryFilter("pending_changes.forwarded_to_museum", None)])
        assert not matches({"pending_changes": None}, [QueryFilter("pending_changes.forwarded_to_museum", False)])

    def test_missing_values_sort_last_in_both_directions(self) -> None:
        documents = [{"id": "a", "year": 1900}, {"id": "b"}, {"id": "c", "year": 1700}]

        ascending = order_documents(documents, "year")
        descending = order_documents(documents, "year", descending=True)

        assert [document["id"] for document in ascending] == ["c", "a", "b"]
        assert [document["id"] for document in descending] == ["a", "c", "b"]


class TestInMemoryDocumentStore:
    """Tests for InMemoryDocumentStore."""

    @pytest.mark.asyncio()
    async def test_documents_are_isolated_copies(self) -> None:
        store = InMemoryDocumentStore()
        data = {"name": "St. Anne", "tags": ["coral"]}
        doc_id = await store.add("churches", data)

        data["tags"].append("mutated")
        fetched = await store.get("churches", doc_id)
        assert fetched == {"id": doc_id, "name": "St. Anne", "tags": ["coral"]}

        assert fetched is not None
        fetched["name"] = "changed"
        assert (await store.get("churches", doc_id)) == {"id": doc_id, "name": "St. Anne", "tags": ["coral"]}

    @pytest.mark.asyncio()
    async def test_query_filters_order_and_limit(self) -> None:
        store = InMemoryDocumentStore()
        await store.set("churches", "a", {"status": "approved", "name": "B"})
        await store.set("churches", "b", {"status": "approved", "name": "A"})
        await store.set("churches", "c", {"status": "pending", "name": "C"})

        result = await store.query("churches", [QueryFilter("status", "approved")], order_by="name", limit=1)

        assert [document["id"] for document in result] == ["b"]

    @pytest.mark.asyncio()
    async def test_update_applies_nested_paths(self) -> None:
        store = InMemoryDocumentStore()
        await store.set("churches", "a", {"pending_changes": {"forwarded_to_museum": False}})

        await store.update("churches", "a", {"pending_changes.forwarded_to_museum": True, "status": "approved"})

        assert await store.get("churches", "a") == {
            "id": "a",
            "pending_changes": {"forwarded_to_museum": True},
            "status": "approved",
        }

    @pytest.mark.asyncio()
    async def test_update_missing_document(self) -> None:
        with pytest.raises(NotFoundError):
            await InMemoryDocumentStore().update("churches", "missing", {"status": "approved"})

    @pytest.mark.asyncio()
    async def test_failed_transaction_leaves_document_unchanged(self) -> None:
        store = InMemoryDocumentStore()
        await store.set("churches", "a", {"status": "approved"})

        def explode(document: dict) -> dict:
            document["status"] = "draft"
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await store.transaction("churches", "a", explode)

        assert (await store.get("churches", "a")) == {"id": "a", "status": "approved"}


class TestInMemoryAuditLog:
    """Tests for InMemoryAuditLog."""

    @pytest.mark.asyncio()
    async def test_query_is_newest_first_with_limit(self, chancery_officer: Actor) -> None:
        log = InMemoryAuditLog()
        start = datetime(2026, 3, 1, tzinfo=UTC)
        for minutes in (0, 10, 5):
            await log.append(
                AuditLogEntry(
                    actor=chancery_officer,
                    action="church.update",
                    resource_type="church",
                    resource_id=f"church-{minutes}",
                    diocese="tagbilaran",
                    timestamp=start + timedelta(minutes=minutes),
                )
            )

        result = await log.query(diocese="tagbilaran", limit=2)

        assert [entry.resource_id for entry in result] == ["church-10", "church-5"]
        assert all(entry.id for entry in result)
        assert log.count() == 3
