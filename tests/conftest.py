"""Test fixtures for the VISITA workflow engine.

Provides:
- diocese: The diocese every test church belongs to
- parish_secretary / chancery_officer / museum_researcher: Actor snapshots
- document_store: A fresh InMemoryDocumentStore
- audit_log: A fresh InMemoryAuditLog capturing append() calls
- audit_service: AuditService over audit_log (inline dispatch)
- workflow: ChurchRecordWorkflow wired to the in-memory adapters
- seed_church: Async helper fixture that stores a church document directly
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from visita_workflow.adapters.memory_store import InMemoryAuditLog, InMemoryDocumentStore
from visita_workflow.core.records import Actor, ChurchFormData
from visita_workflow.core.services import AuditService, ChurchRecordWorkflow
from visita_workflow.core.sparse_update import to_storage_fields

DIOCESE = "tagbilaran"


def make_form(**overrides: Any) -> ChurchFormData:
    """Create a valid church form.

    Args:
        **overrides: Form fields to replace.

    Returns:
        ChurchFormData for "St. Anne" in Loon unless overridden.
    """
    values: dict[str, Any] = {
        "name": "St. Anne",
        "full_name": "St. Anne Parish Church",
        "location": "Poblacion, Loon",
        "municipality": "Loon",
        "founding_year": 1950,
        "description": "A coral stone parish church facing the sea.",
        "historical_background": "Built after the 1945 typhoon.",
        "classification": "non_heritage",
        "assigned_priest": "Fr. Jose Santos",
        "feast_day": "July 26",
        "mass_schedules": [{"day": "Sunday", "time": "06:00"}],
        "contact_info": {"phone": "+63 38 123 4567"},
        "images": ["https://img.example/anne-front.jpg"],
    }
    values.update(overrides)
    return ChurchFormData.model_validate(values)


def make_church_document(
    status: str = "pending",
    classification: str = "non_heritage",
    **overrides: Any,
) -> dict[str, Any]:
    """Create a stored church document without going through create().

    Args:
        status: Workflow status.
        classification: Heritage classification.
        **overrides: Stored fields to replace.

    Returns:
        A JSON-compatible document in storage form.
    """
    now = datetime.now(UTC).isoformat()
    document = to_storage_fields(make_form(classification=classification).model_dump(mode="json"))
    document.update(
        status=status,
        diocese=DIOCESE,
        parish_id=None,
        created_by="parish-1",
        created_at=now,
        submitted_at=now,
        updated_at=now,
        pending_changes=None,
        has_pending_changes=False,
    )
    document.update(overrides)
    return document


@pytest.fixture()
def diocese() -> str:
    """Return the diocese shared by all test actors and churches."""
    return DIOCESE


@pytest.fixture()
def parish_secretary() -> Actor:
    """Return a parish secretary actor.

    Returns:
        Actor with the parish_secretary role in the test diocese.
    """
    return Actor(uid="parish-1", role="parish_secretary", diocese=DIOCESE, email="parish@example.org", name="Parish")


@pytest.fixture()
def chancery_officer() -> Actor:
    """Return a chancery office actor.

    Returns:
        Actor with the chancery_office role in the test diocese.
    """
    return Actor(uid="chancery-1", role="chancery_office", diocese=DIOCESE, email="chancery@example.org")


@pytest.fixture()
def museum_researcher() -> Actor:
    """Return a museum researcher actor.

    Returns:
        Actor with the museum_researcher role in the test diocese.
    """
    return Actor(uid="museum-1", role="museum_researcher", diocese=DIOCESE, email="museum@example.org")


@pytest.fixture()
def document_store() -> InMemoryDocumentStore:
    """Create an empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture()
def audit_log() -> InMemoryAuditLog:
    """Create an empty in-memory audit log."""
    return InMemoryAuditLog()


@pytest.fixture()
def audit_service(audit_log: InMemoryAuditLog) -> AuditService:
    """Create an AuditService with inline dispatch over the in-memory log.

    Args:
        audit_log: Injected in-memory audit log fixture.

    Returns:
        AuditService writing to audit_log.
    """
    return AuditService(audit_log)


@pytest.fixture()
def workflow(document_store: InMemoryDocumentStore, audit_service: AuditService) -> ChurchRecordWorkflow:
    """Create a ChurchRecordWorkflow over the in-memory adapters.

    Args:
        document_store: Injected document store fixture.
        audit_service: Injected audit service fixture.

    Returns:
        A fully wired ChurchRecordWorkflow.
    """
    return ChurchRecordWorkflow(store=document_store, audit_service=audit_service)


@pytest.fixture()
def seed_church(document_store: InMemoryDocumentStore) -> Callable[..., Awaitable[str]]:
    """Return an async helper that stores a church document directly.

    Args:
        document_store: Injected document store fixture.

    Returns:
        Coroutine function (church_id="church-1", **document fields) -> church_id.
    """

    async def seed(church_id: str = "church-1", **fields: Any) -> str:
        await document_store.set("churches", church_id, make_church_document(**fields))
        return church_id

    return seed
