"""SQLAlchemy ORM models for the SQL-backed adapters.

Tables use the `visita_` prefix:
- DocumentRow  — one JSON document per (collection, id); backs SqlDocumentStore
- AuditLogRow  — IMMUTABLE audit log (lives on the SEPARATE audit DB)

IMPORTANT: AuditLogRow is defined here for ORM mapping purposes but it is
written ONLY via AuditLogRepository, which connects to the separate audit DB.
Never write to visita_audit_logs via the documents engine.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base shared by the documents and audit tables."""


class DocumentRow(Base):
    """A JSON document in a named collection.

    Attributes:
        collection: Collection name, e.g. churches.
        id: Document ID, unique within the collection.
        data: The document body without its ID.
        created_at: Insert timestamp (UTC).
        updated_at: Last write timestamp (UTC).
    """

    __tablename__ = "visita_documents"

    collection: Mapped[str] = mapped_column(
        String(100),
        primary_key=True,
        comment="Collection name, e.g. churches",
    )
    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Document ID, unique within the collection",
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JsonType,
        nullable=False,
        default=dict,
        comment="Document body as JSON",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Insert timestamp (UTC)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Last write timestamp (UTC)",
    )


class AuditLogRow(Base):
    """Immutable audit log entry.

    This table has NO UPDATE or DELETE operations. If a correction is needed,
    append a compensating entry referencing the original ID in metadata.
    """

    __tablename__ = "visita_audit_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    actor: Mapped[dict[str, Any]] = mapped_column(
        JsonType,
        nullable=False,
        comment="Actor snapshot: uid, role, diocese, email, name at time of action",
    )
    actor_uid: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
        comment="Denormalized actor.uid for actor history queries",
    )
    action: Mapped[str] = mapped_column(
        String(60),
        nullable=False,
        index=True,
        comment="Dot-notation action, e.g. church.approve",
    )
    resource_type: Mapped[str] = mapped_column(String(30), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    resource_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    changes: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JsonType,
        nullable=True,
        comment="Ordered field changes: [{field, old_value, new_value}]",
    )
    diocese: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    parish_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JsonType,
        nullable=True,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="Immutable event timestamp (UTC)",
    )
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
