"""SQLAlchemy document store for the primary database.

Stores every document as one JSON row in visita_documents, keyed by
(collection, id). Equality filters are pushed down to SQL through the
portable JSON accessors (as_string, as_boolean, as_integer, as_float), which
work on both PostgreSQL (JSONB) and SQLite. Ordering is applied to the
filtered result in Python so that mixed value types sort consistently.

NOTE: Audit log rows never go through this store. They live on the separate
audit database, see audit_wall.py.
"""

import copy
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from visita_workflow.adapters.memory_store import order_documents
from visita_workflow.core.interfaces import DocumentMutation, QueryFilter
from visita_workflow.core.models import DocumentRow
from visita_workflow.core.sparse_update import apply_field_updates
from visita_workflow.errors import NotFoundError
from visita_workflow.observability import get_logger

logger = get_logger(__name__)


def _filter_clause(query_filter: QueryFilter) -> ColumnElement[bool]:
    """Translate an equality filter on a (possibly dotted) field to SQL."""
    parts = tuple(query_filter.field.split("."))
    element = DocumentRow.data[parts] if len(parts) > 1 else DocumentRow.data[parts[0]]
    value = query_filter.value

    if value is None:
        return element.as_string().is_(None)
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == str(value)


def _to_document(row: DocumentRow) -> dict[str, Any]:
    document = copy.deepcopy(row.data)
    document["id"] = row.id
    return document


def _strip_id(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key != "id"}


class SqlDocumentStore:
    """IDocumentStore implementation on an async SQLAlchemy session factory.

    Each operation runs in its own session and transaction. transaction()
    and update() lock the row with SELECT ... FOR UPDATE where the backend
    supports it.

    Args:
        session_factory: Factory for primary DB sessions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize SqlDocumentStore with a session factory.

        Args:
            session_factory: The async_sessionmaker bound to the primary DB engine.
        """
        self._session_factory = session_factory

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, (collection, doc_id))
            return _to_document(row) if row is not None else None

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        stmt = select(DocumentRow).where(DocumentRow.collection == collection)
        for query_filter in filters:
            stmt = stmt.where(_filter_clause(query_filter))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            documents = [_to_document(row) for row in result.scalars().all()]

        documents = order_documents(documents, order_by, descending)
        if limit is not None:
            documents = documents[:limit]
        return documents

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        now = datetime.now(UTC)
        async with self._session_factory() as session, session.begin():
            row = await session.get(DocumentRow, (collection, doc_id))
            if row is None:
                session.add(
                    DocumentRow(
                        collection=collection,
                        id=doc_id,
                        data=_strip_id(data),
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                row.data = _strip_id(data)
                row.updated_at = now
        logger.debug("Document written", collection=collection, doc_id=doc_id)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.transaction(collection, doc_id, lambda document: apply_field_updates(document, fields))

    async def transaction(
        self,
        collection: str,
        doc_id: str,
        mutate: DocumentMutation,
    ) -> dict[str, Any]:
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection, DocumentRow.id == doc_id)
            .with_for_update()
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError(resource="Document", resource_id=doc_id)

            written = _strip_id(mutate(_to_document(row)))
            row.data = written
            row.updated_at = datetime.now(UTC)

        logger.debug("Document transaction committed", collection=collection, doc_id=doc_id)
        return {**written, "id": doc_id}
