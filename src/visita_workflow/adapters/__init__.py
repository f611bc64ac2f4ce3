"""Adapters — storage integrations for the church record workflow.

Contains:
- memory_store.py    — In-memory document store and audit log
- database.py        — Async SQLAlchemy engine helpers
- document_store.py  — SQLAlchemy document store for the primary DB
- audit_wall.py      — Separate audit DB engine and AuditLogRepository
"""

__all__: list[str] = []
