"""
audit/models.py -- Domain dataclass for audit log entries.

An AuditEntry is immutable once written: the store exposes append and read
queries only. frozen=True makes the in-memory copy match that contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AuditCategory(str, Enum):
    AUTH = "auth"
    BLOOD_REQUEST = "blood_request"
    INVENTORY = "inventory"
    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditEntry:
    category: AuditCategory
    message: str
    actor_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: str | None = None
    id: int | None = None
