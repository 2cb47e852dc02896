"""
api/routes/v1/logs.py -- Read-only audit log view for the admin dashboard.

Routes:
  GET /api/v1/logs?category=auth&limit=50   -- newest entries first (admin)

The audit trail is append-only; there is deliberately no write or delete route.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import AuditEntryResponse
from audit.models import AuditCategory
from audit.store import AuditLog
from auth.dependencies import require_admin
from auth.models import User

router = APIRouter()


@router.get("/logs", response_model=list[AuditEntryResponse])
def list_logs(
    request: Request,
    category: Optional[AuditCategory] = None,
    limit: int = Query(default=100, ge=1, le=500),
    current_user: User = Depends(require_admin),
) -> list[AuditEntryResponse]:
    audit: AuditLog = request.app.state.audit_log
    return [AuditEntryResponse.from_entry(e) for e in audit.recent(category, limit)]
