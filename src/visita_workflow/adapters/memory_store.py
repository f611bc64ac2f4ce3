"""In-memory document store and append-only audit log.

Both adapters keep their data in process memory, which makes tests hermetic
without database infrastructure and is enough for local development. Stored
documents are deep-copied on every read and write so callers never share
mutable state with the store.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from visita_workflow.core.interfaces import DocumentMutation, QueryFilter
from visita_workflow.core.records import AuditLogEntry
from visita_workflow.core.sparse_update import apply_field_updates
from visita_workflow.errors import NotFoundError

_MISSING = object()


def field_value(document: dict[str, Any], path: str) -> Any:
    """Resolve a top-level field or dotted path, returning _MISSING if absent."""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def matches(document: dict[str, Any], filters: Iterable[QueryFilter]) -> bool:
    """Return True when the document satisfies every equality filter."""
    for query_filter in filters:
        value = field_value(document, query_filter.field)
        if value is _MISSING:
            value = None
        if value != query_filter.value:
            return False
    return True


def order_documents(
    documents: list[dict[str, Any]],
    order_by: str | None,
    descending: bool = False,
) -> list[dict[str, Any]]:
    """Sort documents by one field. Documents without the field sort last."""
    if order_by is None:
        return documents

    def sort_key(document: dict[str, Any]) -> tuple[bool, Any]:
        value = field_value(document, order_by)
        missing = value is _MISSING or value is None
        return (missing != descending, None if missing else value)

    return sorted(documents, key=sort_key, reverse=descending)


class InMemoryDocumentStore:
    """Document store backed by nested dicts.

    Documents are held as {collection: {doc_id: data}} where data never
    contains the "id" key. A single asyncio.Lock serializes transactions
    and partial updates.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _with_id(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        document = copy.deepcopy(data)
        document["id"] = doc_id
        return document

    @staticmethod
    def _without_id(data: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(data)
        stored.pop("id", None)
        return stored

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        data = self._collection(collection).get(doc_id)
        if data is None:
            return None
        return self._with_id(doc_id, data)

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        documents = [
            self._with_id(doc_id, data)
            for doc_id, data in self._collection(collection).items()
            if matches(data, filters)
        ]
        documents = order_documents(documents, order_by, descending)
        if limit is not None:
            documents = documents[:limit]
        return documents

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = self._without_id(data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collection(collection)[doc_id] = self._without_id(data)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        async with self._lock:
            documents = self._collection(collection)
            if doc_id not in documents:
                raise NotFoundError(resource="Document", resource_id=doc_id)
            documents[doc_id] = self._without_id(apply_field_updates(documents[doc_id], fields))

    async def transaction(
        self,
        collection: str,
        doc_id: str,
        mutate: DocumentMutation,
    ) -> dict[str, Any]:
        async with self._lock:
            documents = self._collection(collection)
            if doc_id not in documents:
                raise NotFoundError(resource="Document", resource_id=doc_id)
            written = self._without_id(mutate(self._with_id(doc_id, documents[doc_id])))
            documents[doc_id] = written
            return self._with_id(doc_id, written)


class InMemoryAuditLog:
    """Append-only audit log held in a list.

    Entries are stored in append order. There is no update or delete; the
    only write operation is append().
    """

    def __init__(self) -> None:
        """Initialize an empty audit log."""
        self._entries: list[AuditLogEntry] = []

    async def append(self, entry: AuditLogEntry) -> str:
        entry_id = entry.id or str(uuid.uuid4())
        self._entries.append(entry.model_copy(update={"id": entry_id}))
        return entry_id

    async def query(
        self,
        diocese: str | None = None,
        actor_uid: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        action: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        result = [
            entry
            for entry in self._entries
            if (diocese is None or entry.diocese == diocese)
            and (actor_uid is None or entry.actor.uid == actor_uid)
            and (resource_type is None or entry.resource_type == resource_type)
            and (resource_id is None or entry.resource_id == resource_id)
            and (action is None or entry.action == action)
        ]
        # Stable sort keeps append order for entries sharing a timestamp
        result = sorted(reversed(result), key=lambda entry: entry.timestamp, reverse=True)
        if limit is not None:
            result = result[:limit]
        return result

    def count(self) -> int:
        """Return the total number of stored entries."""
        return len(self._entries)

    def all_entries(self) -> list[AuditLogEntry]:
        """Return every entry in append order."""
        return list(self._entries)
