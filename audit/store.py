"""
audit/store.py -- Append-only audit trail for security-relevant events.

Pattern: Repository + Data Mapper (same shape as auth/store.py).

The write surface is a single method, append(category, message, actor_id,
metadata). There is no update or delete. Reads (recent()) back the admin
log view only; nothing in the auth path consults the log for control flow.

metadata is stored as a JSON text column. actor_id is a plain integer, not a
foreign key: entries outlive the users they mention.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from audit.models import AuditCategory, AuditEntry
from core.config import get_settings, now_iso
from core.database import make_engine

_metadata = MetaData()

_system_logs = Table(
    "system_logs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("category", String(30), nullable=False),
    Column("message", Text, nullable=False),
    Column("actor_id", Integer),
    Column("metadata_json", Text),
    Column("timestamp", String(32), nullable=False),
    Index("ix_system_logs_category_ts", "category", "timestamp"),
    Index("ix_system_logs_actor_ts", "actor_id", "timestamp"),
)


class AuditLog:
    """Append-only store for AuditEntry records.

    Usage:
        audit = AuditLog()
        audit.append(AuditCategory.AUTH, "User logged in: a@x.com", actor_id=7)
        entries = audit.recent(category=AuditCategory.AUTH, limit=20)
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def append(
        self,
        category: AuditCategory,
        message: str,
        actor_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Write one entry and return its ID.

        Raises ValueError for an unknown category and SQLAlchemyError on
        storage failure. Callers on the login/registration path go through
        auth.flows.record_audit(), which logs the failure instead of raising.
        """
        category = AuditCategory(category)
        with self.engine.connect() as conn:
            result = conn.execute(
                _system_logs.insert().values(
                    category=category.value,
                    message=message.strip(),
                    actor_id=actor_id,
                    metadata_json=json.dumps(metadata, default=str) if metadata else None,
                    timestamp=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def recent(self, category: AuditCategory | None = None, limit: int = 100) -> list[AuditEntry]:
        """Return the newest entries first, optionally filtered by category."""
        query = _system_logs.select().order_by(_system_logs.c.timestamp.desc(), _system_logs.c.id.desc())
        if category is not None:
            query = query.where(_system_logs.c.category == AuditCategory(category).value)
        with self.engine.connect() as conn:
            rows = conn.execute(query.limit(limit)).fetchall()
        return [_row_to_entry(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        category=AuditCategory(row.category),
        message=row.message,
        actor_id=row.actor_id,
        metadata=json.loads(row.metadata_json) if row.metadata_json else {},
        timestamp=row.timestamp,
    )
