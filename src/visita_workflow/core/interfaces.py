"""Abstract interfaces (Protocol classes) for the workflow engine.

Defines the contracts between the service layer and the adapter layer using
Python's typing.Protocol. Services depend on these protocols, never on
concrete adapters, so tests can substitute the in-memory implementations or
mocks.

Protocols defined:
- IDocumentStore
- IAuditSink
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from visita_workflow.core.records import AuditLogEntry

DocumentMutation = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class QueryFilter:
    """Equality filter on a document field.

    Attributes:
        field: Top-level field name, or a dotted path into a nested object.
        value: Value the field must equal.
    """

    field: str
    value: Any


class IDocumentStore(Protocol):
    """Document database contract.

    Documents are JSON-compatible dicts. Every document returned by get() or
    query() carries its identifier under the "id" key.
    """

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch a document by ID.

        Args:
            collection: Collection name.
            doc_id: Document ID.

        Returns:
            The document, or None if it does not exist.
        """
        ...

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return the documents matching every filter.

        Args:
            collection: Collection name.
            filters: Equality filters, combined with AND.
            order_by: Optional field to sort by.
            descending: Sort direction when order_by is given.
            limit: Optional maximum number of results.

        Returns:
            Matching documents in the requested order.
        """
        ...

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated ID and return the ID."""
        ...

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create (or overwrite) a document under an explicit ID."""
        ...

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        ...

    async def transaction(
        self,
        collection: str,
        doc_id: str,
        mutate: DocumentMutation,
    ) -> dict[str, Any]:
        """Atomically read, mutate and write back one document.

        Args:
            collection: Collection name.
            doc_id: Document ID.
            mutate: Receives a private copy of the current document and
                returns the complete replacement document.

        Returns:
            The document as written.

        Raises:
            NotFoundError: If the document does not exist.
        """
        ...


class IAuditSink(Protocol):
    """Append-only audit log contract. No update or delete operations exist."""

    async def append(self, entry: AuditLogEntry) -> str:
        """Persist an audit entry and return its ID."""
        ...

    async def query(
        self,
        diocese: str | None = None,
        actor_uid: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        action: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Return matching audit entries, newest first."""
        ...
