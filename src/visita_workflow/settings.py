"""Service settings for the VISITA workflow engine.

All settings use the VISITA_ environment prefix and cover:
- Document store backend selection (in-memory or SQLAlchemy)
- Audit Wall (separate database for the append-only audit log)
- Audit dispatch mode (inline or background task)
- Logging
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the VISITA workflow engine.

    Environment variable prefix: VISITA_
    """

    service_name: str = "visita-workflow"

    # -------------------------------------------------------------------------
    # Document store
    # -------------------------------------------------------------------------

    store_backend: Literal["memory", "sql"] = Field(
        default="memory",
        description="memory keeps documents in process (development and tests); "
        "sql uses the SQLAlchemy documents table at database_url.",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./visita.db",
        description="SQLAlchemy async URL for the church documents table.",
    )
    database_pool_size: int = Field(
        default=10,
        description="Connection pool size for the documents database (ignored by SQLite).",
    )
    churches_collection: str = Field(
        default="churches",
        description="Collection name under which church records are stored.",
    )

    # -------------------------------------------------------------------------
    # Audit Wall: separate database for the immutable audit log
    # -------------------------------------------------------------------------

    audit_db_url: str = Field(
        default="sqlite+aiosqlite:///./visita_audit.db",
        description="SQLAlchemy async URL for the SEPARATE audit database. "
        "The DB user should only hold INSERT and SELECT grants on visita_audit_logs.",
    )
    audit_db_pool_size: int = Field(
        default=5,
        description="Connection pool size for the audit DB. Keep small, writes are append-only.",
    )
    audit_dispatch: Literal["inline", "background"] = Field(
        default="inline",
        description="inline awaits each audit append (failures swallowed); "
        "background schedules the append as a task and returns immediately.",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(default="INFO", description="Minimum log level.")
    log_json: bool = Field(default=False, description="Emit JSON log lines.")

    model_config = SettingsConfigDict(env_prefix="VISITA_")
